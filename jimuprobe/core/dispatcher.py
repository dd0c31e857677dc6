"""Send framed commands through the ranked write-candidate list."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import TypeVar

from jimuprobe.core import frame
from jimuprobe.core.errors import TransportError, TransportTimeoutError
from jimuprobe.core.model import CharacteristicInfo, DispatchResult, WriteFailure
from jimuprobe.transports.base import BLELink

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], timeout_s: float | None, label: str) -> T:
    if timeout_s is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout_s)
    except asyncio.TimeoutError as exc:
        raise TransportTimeoutError(f"{label} timed out after {timeout_s}s") from exc


class CommandDispatcher:
    def __init__(
        self,
        link: BLELink,
        candidates: Sequence[CharacteristicInfo],
        *,
        write_timeout_s: float | None = None,
    ) -> None:
        self.link = link
        self.candidates = tuple(candidates)
        self.write_timeout_s = write_timeout_s

    async def send(self, payload: bytes, label: str | None = None) -> DispatchResult:
        """Write one framed payload, falling through candidates until a write succeeds.

        Running out of candidates is reported in the result, not raised.
        """
        message = frame.encode(payload)
        failures: list[WriteFailure] = []

        for characteristic in self.candidates:
            without_response = characteristic.prefers_without_response
            LOGGER.info(
                "SEND %s via %s %s wwr=%s",
                label or "payload",
                characteristic.uuid,
                message.hex(),
                without_response,
            )
            try:
                await with_timeout(
                    self.link.write(characteristic, message, without_response=without_response),
                    self.write_timeout_s,
                    f"Write {characteristic.uuid}",
                )
            except TransportError as exc:
                LOGGER.warning("Write failed %s: %s", characteristic.uuid, exc)
                failures.append(WriteFailure(uuid=characteristic.uuid, message=str(exc)))
                continue
            return DispatchResult(
                frame=message,
                characteristic=characteristic,
                without_response=without_response,
                failures=tuple(failures),
            )

        LOGGER.error("All %d write candidates failed for %s", len(self.candidates), message.hex())
        return DispatchResult(frame=message, characteristic=None, without_response=None, failures=tuple(failures))
