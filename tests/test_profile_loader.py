from __future__ import annotations

from pathlib import Path

import pytest

from jimuprobe.core.errors import ProfileValidationError
from jimuprobe.core.profile_loader import load_profiles


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def _write_profile(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _user_profile(tmp_path: Path, name: str) -> Path:
    return tmp_path / "cfg" / "jimuprobe" / "profiles" / name


def test_load_packaged_profiles() -> None:
    loaded = load_profiles()
    assert {"jimu", "jimu_sensor", "jimu_led"} <= set(loaded.profiles)
    assert loaded.warnings == ()

    profile = loaded.profiles["jimu"]
    assert profile.match.name_contains == "jimu"
    assert profile.protocol.vendor_prefix == "49535343"
    assert profile.protocol.preferred_writes[0] == "49535343884143f4a8d4ecbe34729bb3"
    assert profile.presets["1"].payloads[0].hex() == "7e010101"
    assert [p.hex() for p in profile.presets["0"].payloads] == ["070103010100", "070103020100"]
    assert profile.timeouts.connect_s == 10.0
    assert profile.timeouts.write_s is None
    assert profile.quit_keys == ("q",)


def test_payload_hex_with_spaces_is_normalized() -> None:
    led = load_profiles().profiles["jimu_led"]
    assert led.presets["r"].payloads[0].hex() == "7904030a01ffffffff"


def test_invalid_hex_in_user_profile_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_profile(tmp_path, "bad.yaml"),
        """
id: bad_hex
name: Bad Hex
match:
  name_contains: "jimu"
protocol:
  vendor_prefix: "49535343"
presets:
  "1":
    label: broken
    payload: "xyz"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_missing_required_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_profile(tmp_path, "missing.yaml"),
        """
id: missing
name: Missing
match:
  name_contains: "jimu"
presets:
  "1":
    label: read
    payload: "7e010101"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_user_profile_overrides_packaged(tmp_path: Path) -> None:
    _write_profile(
        _user_profile(tmp_path, "override.yaml"),
        """
id: jimu
name: User Override
match:
  name_contains: "jimu"
protocol:
  vendor_prefix: "4953-5343"
timeouts:
  write_s: 2
presets:
  "x":
    label: positions
    payload: "0b 00 00"
""",
    )

    loaded = load_profiles()
    profile = loaded.profiles["jimu"]
    assert profile.name == "User Override"
    assert profile.protocol.vendor_prefix == "49535343"
    assert profile.timeouts.write_s == 2.0
    assert profile.timeouts.connect_s == 10.0
    assert profile.presets["x"].payloads == (bytes.fromhex("0b0000"),)
    assert any("overrides" in warning for warning in loaded.warnings)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_profile(tmp_path, "dup.yaml"),
        """
id: dup
name: Duplicate
match:
  name_contains: "jimu"
protocol:
  vendor_prefix: "49535343"
presets:
  "1":
    label: a
    payload: "aa00"
  "1":
    label: b
    payload: "aa01"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_quit_key_cannot_be_a_preset(tmp_path: Path) -> None:
    _write_profile(
        _user_profile(tmp_path, "clash.yaml"),
        """
id: clash
name: Clash
match:
  name_contains: "jimu"
protocol:
  vendor_prefix: "49535343"
quit_keys: ["x"]
presets:
  "x":
    label: a
    payload: "aa00"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_oversized_payload_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_profile(tmp_path, "big.yaml"),
        f"""
id: big
name: Big
match:
  name_contains: "jimu"
protocol:
  vendor_prefix: "49535343"
presets:
  "b":
    label: too_big
    payload: "{'00' * 252}"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()
