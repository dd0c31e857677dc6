"""Map operator keystrokes to probe actions."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from jimuprobe.core.errors import FrameError
from jimuprobe.core.frame import MAX_PAYLOAD
from jimuprobe.core.model import Preset, Profile

CTRL_C = "\x03"
RAW_PREFIX = ":"


class ActionKind(enum.Enum):
    QUIT = "quit"
    PRESET = "preset"
    RAW = "raw"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class OperatorAction:
    kind: ActionKind
    text: str
    preset: Preset | None = None
    payload: bytes | None = None

    @property
    def raw_bytes(self) -> list[int]:
        return list(self.text.encode("utf-8"))


def parse_payload_hex(value: str) -> bytes:
    normalized = value.strip().lower().replace(" ", "")
    if not normalized:
        raise FrameError("payload must not be empty")
    if len(normalized) % 2 != 0:
        raise FrameError(f"payload '{value}' must have even-length hex")
    try:
        payload = bytes.fromhex(normalized)
    except ValueError as exc:
        raise FrameError(f"payload '{value}' must contain only [0-9a-f]") from exc
    if len(payload) > MAX_PAYLOAD:
        raise FrameError(f"payload exceeds max frame payload {MAX_PAYLOAD} bytes")
    return payload


def resolve_input(text: str, profile: Profile) -> OperatorAction:
    if text.startswith(CTRL_C):
        return OperatorAction(ActionKind.QUIT, text)

    key = text.strip()
    if key in profile.quit_keys:
        return OperatorAction(ActionKind.QUIT, text)

    preset = profile.presets.get(key)
    if preset is not None:
        return OperatorAction(ActionKind.PRESET, text, preset=preset)

    if key.startswith(RAW_PREFIX) and len(key) > 1:
        try:
            payload = parse_payload_hex(key[1:])
        except FrameError:
            return OperatorAction(ActionKind.UNKNOWN, text)
        return OperatorAction(ActionKind.RAW, text, payload=payload)

    return OperatorAction(ActionKind.UNKNOWN, text)


def controls_help(profile: Profile) -> str:
    keys = "  ".join(f"{key}={preset.label}" for key, preset in profile.presets.items())
    quit_keys = ",".join(profile.quit_keys)
    return f"Controls: {keys}  {RAW_PREFIX}<hex>=raw payload  {quit_keys}=quit"
