"""Wire framing for the JIMU BLE command protocol.

A frame is ``FB BF <len> <payload...> <checksum> ED`` where ``len`` is the
payload length plus four and ``checksum`` is the byte sum, modulo 256, of the
length byte and the payload. The sync bytes are not part of the checksum.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from jimuprobe.core.errors import FrameError

SYNC = b"\xfb\xbf"
TERMINATOR = 0xED
LENGTH_OFFSET = 4
MAX_PAYLOAD = 0xFF - LENGTH_OFFSET
_MIN_FRAME = len(SYNC) + 3


class FrameStatus(enum.Enum):
    VALID = "valid"
    CHECKSUM_MISMATCH = "checksum-mismatch"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DecodedFrame:
    status: FrameStatus
    raw: bytes
    payload: bytes = b""
    length: int | None = None
    checksum: int | None = None
    expected_checksum: int | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is FrameStatus.VALID


def checksum(data: bytes) -> int:
    return sum(data) & 0xFF


def encode(payload: bytes) -> bytes:
    """Wrap a command payload in a wire frame.

    Raises FrameError when the length byte would overflow.
    """
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD:
        raise FrameError(
            f"Payload of {len(payload)} bytes exceeds max frame payload {MAX_PAYLOAD} bytes"
        )
    body = SYNC + bytes([len(payload) + LENGTH_OFFSET]) + payload
    return body + bytes([checksum(body[2:]), TERMINATOR])


def decode(frame: bytes) -> DecodedFrame:
    """Check one complete frame and extract its payload."""
    raw = bytes(frame)
    if len(raw) < _MIN_FRAME:
        return DecodedFrame(FrameStatus.MALFORMED, raw, reason=f"frame too short ({len(raw)} bytes)")
    if raw[:2] != SYNC:
        return DecodedFrame(FrameStatus.MALFORMED, raw, reason="missing sync bytes")
    if raw[-1] != TERMINATOR:
        return DecodedFrame(FrameStatus.MALFORMED, raw, reason=f"missing terminator 0x{TERMINATOR:02x}")

    length = raw[2]
    if length != len(raw) - 1:
        return DecodedFrame(
            FrameStatus.MALFORMED,
            raw,
            length=length,
            reason=f"length byte {length} does not match frame size {len(raw)}",
        )

    payload = raw[3:-2]
    expected = checksum(raw[2:-2])
    if raw[-2] != expected:
        return DecodedFrame(
            FrameStatus.CHECKSUM_MISMATCH,
            raw,
            payload=payload,
            length=length,
            checksum=raw[-2],
            expected_checksum=expected,
            reason=f"checksum 0x{raw[-2]:02x} != 0x{expected:02x}",
        )
    return DecodedFrame(
        FrameStatus.VALID,
        raw,
        payload=payload,
        length=length,
        checksum=expected,
        expected_checksum=expected,
    )


class FrameAssembler:
    """Reassembles frames from an arbitrarily chunked byte stream.

    Bytes before a sync marker are discarded. A length byte that cannot
    describe a whole frame skips past the marker and scanning resumes.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        return bytes(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()

    def feed(self, chunk: bytes) -> list[DecodedFrame]:
        self._buffer.extend(chunk)
        frames: list[DecodedFrame] = []
        while len(self._buffer) >= len(SYNC):
            start = self._buffer.find(SYNC)
            if start == -1:
                # Keep a trailing first sync byte; its partner may be in the next chunk.
                keep = 1 if self._buffer[-1:] == SYNC[:1] else 0
                del self._buffer[: len(self._buffer) - keep]
                break
            if start:
                del self._buffer[:start]
            if len(self._buffer) < 3:
                break

            length = self._buffer[2]
            total = length + 1
            if total < _MIN_FRAME:
                bad = bytes(self._buffer[:3])
                del self._buffer[:2]
                frames.append(
                    DecodedFrame(
                        FrameStatus.MALFORMED,
                        bad,
                        length=length,
                        reason=f"frame too short (len={length})",
                    )
                )
                continue
            if len(self._buffer) < total:
                break

            raw = bytes(self._buffer[:total])
            del self._buffer[:total]
            frames.append(decode(raw))
        return frames
