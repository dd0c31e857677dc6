from __future__ import annotations

import pytest

from jimuprobe.core.errors import FrameError
from jimuprobe.core.model import MatchRules, Preset, Profile, ProtocolSpec, Timeouts
from jimuprobe.core.operator import ActionKind, controls_help, parse_payload_hex, resolve_input

PROFILE = Profile(
    id="test",
    name="Test",
    match=MatchRules(name_contains="jimu"),
    protocol=ProtocolSpec(vendor_prefix="49535343"),
    timeouts=Timeouts(),
    presets={"2": Preset(key="2", label="get_positions", payloads=(bytes.fromhex("0b0000"),))},
    quit_keys=("q",),
)


def test_preset_key_resolves() -> None:
    action = resolve_input("2", PROFILE)
    assert action.kind is ActionKind.PRESET
    assert action.preset is not None
    assert action.preset.label == "get_positions"


@pytest.mark.parametrize("text", ["q", "q\n", "\x03"])
def test_quit_inputs(text: str) -> None:
    assert resolve_input(text, PROFILE).kind is ActionKind.QUIT


def test_raw_payload() -> None:
    action = resolve_input(":7e 01 01 01", PROFILE)
    assert action.kind is ActionKind.RAW
    assert action.payload == bytes.fromhex("7e010101")


@pytest.mark.parametrize("text", ["x", ":", ":zz", ":abc", ""])
def test_unrecognized_input_is_unknown(text: str) -> None:
    action = resolve_input(text, PROFILE)
    assert action.kind is ActionKind.UNKNOWN
    assert action.raw_bytes == list(text.encode())


def test_parse_payload_hex_validation() -> None:
    assert parse_payload_hex("0B FF") == b"\x0b\xff"
    with pytest.raises(FrameError):
        parse_payload_hex("")
    with pytest.raises(FrameError):
        parse_payload_hex("abc")
    with pytest.raises(FrameError):
        parse_payload_hex("00" * 252)


def test_controls_help_lists_presets() -> None:
    text = controls_help(PROFILE)
    assert "2=get_positions" in text
    assert "q=quit" in text
