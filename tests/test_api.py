from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from jimuprobe.api import Client, FrameStatus
from jimuprobe.core.model import DetectedDevice


class FakeLink:
    async def scan(self, *, timeout_s, match=None, first_match=False):
        devices = [
            DetectedDevice(address="AA:BB:CC:00:11:22", name="JIMU-Robot-42"),
            DetectedDevice(address="11:22:33:44:55:66", name="Speaker"),
        ]
        return [d for d in devices if match is None or match(d.name)]


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def test_public_client_list_profiles() -> None:
    client = Client(link=FakeLink())
    profiles = client.list_profiles()
    assert any(p.id == "jimu" for p in profiles)
    assert client.get_profile().id == "jimu"
    assert client.load_warnings == ()


def test_public_client_scan() -> None:
    client = Client(link=FakeLink())

    everything = asyncio.run(client.scan())
    matched = asyncio.run(client.scan(matched_only=True))

    assert len(everything) == 2
    assert [d.name for d in matched] == ["JIMU-Robot-42"]


def test_public_client_frames() -> None:
    frame = Client.encode_frame(b"\x0b\xff")
    assert frame.hex() == "fbbf060bff10ed"
    decoded = Client.decode_frame(frame)
    assert decoded.status is FrameStatus.VALID
    assert decoded.payload == b"\x0b\xff"
