"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from jimuprobe.core.model import CharacteristicInfo, DetectedDevice, ServiceInfo

NotifyCallback = Callable[[bytes], None]
DisconnectCallback = Callable[[], None]


class BLELink(Protocol):
    async def scan(
        self,
        *,
        timeout_s: float,
        match: Callable[[str | None], bool] | None = None,
        first_match: bool = False,
    ) -> list[DetectedDevice]:
        """Scan for peripherals.

        With ``first_match`` the scan stops as soon as ``match`` accepts a name.
        """

    async def connect(
        self,
        address: str,
        *,
        timeout_s: float | None = None,
        on_disconnect: DisconnectCallback | None = None,
    ) -> None:
        """Connect to a peripheral by address.

        ``on_disconnect`` fires when the peripheral drops the link, not on ``disconnect()``.
        """

    async def discover(self) -> list[ServiceInfo]:
        """Return all services and characteristics of the connected peripheral."""

    async def write(self, characteristic: CharacteristicInfo, data: bytes, *, without_response: bool) -> None:
        """Write bytes to a characteristic."""

    async def subscribe(self, characteristic: CharacteristicInfo, callback: NotifyCallback) -> None:
        """Enable notifications and deliver each value to ``callback``."""

    async def unsubscribe(self, characteristic: CharacteristicInfo) -> None:
        """Disable notifications."""

    async def disconnect(self) -> None:
        """Drop the connection."""
