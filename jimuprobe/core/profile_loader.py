"""Profile loading and validation for YAML-based jimuprobe device profiles."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from jimuprobe.core.errors import FrameError, ProfileLoadError, ProfileValidationError
from jimuprobe.core.model import MatchRules, Preset, Profile, ProtocolSpec, Timeouts
from jimuprobe.core.operator import parse_payload_hex

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Preset keys such as y/n must stay strings.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, Profile]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("jimuprobe.schemas").joinpath("profile.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "jimuprobe/profiles", xdg_data / "jimuprobe/profiles"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return loaded


def _normalize_payload(value: str, *, context: str) -> bytes:
    try:
        return parse_payload_hex(value)
    except FrameError as exc:
        raise ProfileValidationError(f"{context}: {exc}") from exc


def _normalize_prefix(value: str, *, context: str) -> str:
    normalized = value.strip().lower().replace("-", "")
    if not normalized or any(ch not in "0123456789abcdef" for ch in normalized):
        raise ProfileValidationError(f"{context} must be a hex UUID prefix")
    return normalized


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _build_timeouts(doc: dict[str, Any]) -> Timeouts:
    defaults = Timeouts()
    return Timeouts(
        connect_s=_optional_float(doc.get("connect_s", defaults.connect_s)),
        subscribe_s=_optional_float(doc.get("subscribe_s", defaults.subscribe_s)),
        unsubscribe_s=_optional_float(doc.get("unsubscribe_s", defaults.unsubscribe_s)),
        disconnect_s=_optional_float(doc.get("disconnect_s", defaults.disconnect_s)),
        write_s=_optional_float(doc.get("write_s", defaults.write_s)),
    )


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> Profile:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    presets: dict[str, Preset] = {}
    for key, preset_spec in doc["presets"].items():
        raw_payloads = preset_spec["payload"]
        if isinstance(raw_payloads, str):
            raw_payloads = [raw_payloads]
        payloads = tuple(
            _normalize_payload(hex_payload, context=f"{doc['id']}.presets.{key}[{idx}]")
            for idx, hex_payload in enumerate(raw_payloads)
        )
        presets[str(key)] = Preset(key=str(key), label=preset_spec["label"], payloads=payloads)

    quit_keys = tuple(str(k) for k in doc.get("quit_keys", ["q"]))
    clashing = sorted(set(quit_keys) & set(presets))
    if clashing:
        raise ProfileValidationError(
            f"Profile '{doc['id']}' uses quit key(s) {', '.join(clashing)} as preset keys"
        )

    protocol_doc = doc["protocol"]
    return Profile(
        id=doc["id"],
        name=doc["name"],
        match=MatchRules(name_contains=doc["match"]["name_contains"]),
        protocol=ProtocolSpec(
            vendor_prefix=_normalize_prefix(
                protocol_doc["vendor_prefix"],
                context=f"{doc['id']}.protocol.vendor_prefix",
            ),
            preferred_writes=tuple(
                _normalize_prefix(uuid, context=f"{doc['id']}.protocol.preferred_writes")
                for uuid in protocol_doc.get("preferred_writes", [])
            ),
        ),
        timeouts=_build_timeouts(doc.get("timeouts", {})),
        presets=presets,
        scan_timeout_s=float(doc.get("scan_timeout_s", 5.0)),
        quit_keys=quit_keys,
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("jimuprobe.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, Profile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        doc = _read_yaml(path)
        profile = _build_profile(doc, path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        doc = _read_yaml(path)
        profile = _build_profile(doc, path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
