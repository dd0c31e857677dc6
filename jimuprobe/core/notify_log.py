"""Sequence-numbered logging of inbound notification traffic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from jimuprobe.core import frame
from jimuprobe.core.model import NotificationEvent

LOGGER = logging.getLogger(__name__)


def render(event: NotificationEvent) -> str:
    shape = frame.decode(event.payload).status.value
    return (
        f"NOTIFY {event.sequence:04d} char={event.source} "
        f"hex={event.payload.hex()} bytes={list(event.payload)} frame={shape}"
    )


class NotificationLogger:
    """Numbers notifications relative to the most recently issued command.

    Numbering happens in the transport callback so it reflects arrival order;
    rendering and output happen in the ``drain`` task.
    """

    def __init__(self, emit: Callable[[str], None] | None = None) -> None:
        self._emit = emit or LOGGER.info
        self._sequence = 1
        self._arrivals = 0
        self._command: str | None = None
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue()

    @property
    def next_sequence(self) -> int:
        return self._sequence

    def begin_command(self, label: str | None = None) -> None:
        """Restart numbering; call before the command's write is issued."""
        self._sequence = 1
        self._command = label

    def record(self, source: str, data: bytes) -> NotificationEvent:
        self._arrivals += 1
        event = NotificationEvent(
            sequence=self._sequence,
            source=source,
            payload=bytes(data),
            arrival=self._arrivals,
            command=self._command,
        )
        self._sequence += 1
        return event

    def handler(self, source: str) -> Callable[[bytes], None]:
        def _on_notify(data: bytes) -> None:
            self._queue.put_nowait(self.record(source, data))

        return _on_notify

    async def drain(self) -> None:
        while True:
            event = await self._queue.get()
            self._emit(render(event))
            self._queue.task_done()

    def flush(self) -> int:
        flushed = 0
        while not self._queue.empty():
            self._emit(render(self._queue.get_nowait()))
            self._queue.task_done()
            flushed += 1
        return flushed
