"""One probing session against one connected peripheral."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from jimuprobe.core.dispatcher import CommandDispatcher, with_timeout
from jimuprobe.core.errors import JimuProbeError, SelectionError, TransportError
from jimuprobe.core.model import (
    CharacteristicSelection,
    DetectedDevice,
    DispatchResult,
    Outcome,
    Preset,
    Profile,
    ServiceInfo,
)
from jimuprobe.core.notify_log import NotificationLogger
from jimuprobe.core.selector import select_characteristics
from jimuprobe.transports.base import BLELink

LOGGER = logging.getLogger(__name__)


async def best_effort(action: str, awaitable: Awaitable[object], timeout_s: float | None = None) -> Outcome:
    """Run a shutdown step whose failure must not stop the shutdown."""
    try:
        await with_timeout(awaitable, timeout_s, action)
    except JimuProbeError as exc:
        LOGGER.debug("%s failed: %s", action, exc)
        return Outcome(action=action, error=str(exc))
    return Outcome(action=action)


def describe_services(services: list[ServiceInfo]) -> list[str]:
    lines: list[str] = []
    for service in services:
        lines.append(f"Service {service.uuid}")
        for idx, char in enumerate(service.characteristics):
            caps = ",".join(char.capabilities.names()) or "-"
            lines.append(f"  {idx}:{char.uuid}:{caps} handle={char.handle}")
    return lines


class ProbeSession:
    def __init__(
        self,
        link: BLELink,
        profile: Profile,
        *,
        notifications: NotificationLogger | None = None,
    ) -> None:
        self.link = link
        self.profile = profile
        self.notifications = notifications or NotificationLogger()
        self.device: DetectedDevice | None = None
        self.selection: CharacteristicSelection | None = None
        self.subscribed: list[str] = []
        self._dispatcher: CommandDispatcher | None = None
        self._drain_task: asyncio.Task[None] | None = None
        self.disconnected = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._dispatcher is not None

    async def open(self, device: DetectedDevice) -> CharacteristicSelection:
        """Connect, select characteristics, and subscribe to every notify target.

        Raises SelectionError after disconnecting when the peripheral has no usable
        write or notify characteristic.
        """
        timeouts = self.profile.timeouts
        LOGGER.info("Connecting to %s (%s)", device.label, device.address)
        self.disconnected.clear()
        await self.link.connect(
            device.address,
            timeout_s=timeouts.connect_s,
            on_disconnect=self._on_link_lost,
        )
        self.device = device

        services = await self.link.discover()
        for line in describe_services(services):
            LOGGER.info(line)

        try:
            selection = select_characteristics(services, self.profile.protocol)
        except SelectionError:
            await best_effort("Disconnect", self.link.disconnect(), timeouts.disconnect_s)
            self.device = None
            raise

        LOGGER.info(
            "Target service %s | write candidates: %s | notify targets: %s",
            selection.target_service or "<none>",
            ", ".join(c.uuid for c in selection.write_candidates),
            ", ".join(c.uuid for c in selection.notify_targets),
        )

        self._drain_task = asyncio.create_task(self.notifications.drain())
        for characteristic in selection.notify_targets:
            try:
                await with_timeout(
                    self.link.subscribe(characteristic, self.notifications.handler(characteristic.uuid)),
                    timeouts.subscribe_s,
                    f"Subscribe {characteristic.uuid}",
                )
            except TransportError as exc:
                LOGGER.warning("Subscribe failed %s: %s", characteristic.uuid, exc)
                continue
            self.subscribed.append(characteristic.uuid)
            LOGGER.info("Subscribed notify %s", characteristic.uuid)

        self.selection = selection
        self._dispatcher = CommandDispatcher(
            self.link,
            selection.write_candidates,
            write_timeout_s=timeouts.write_s,
        )
        return selection

    def _on_link_lost(self) -> None:
        label = self.device.label if self.device is not None else "peripheral"
        LOGGER.warning("Device %s disconnected", label)
        self.disconnected.set()

    async def send(self, payload: bytes, label: str | None = None) -> DispatchResult:
        if self._dispatcher is None:
            raise JimuProbeError("Session is not open")
        self.notifications.begin_command(label)
        result = await self._dispatcher.send(payload, label)
        if result.success:
            LOGGER.info(
                "Sent %s via %s wwr=%s",
                label or "payload",
                result.characteristic.uuid,
                result.without_response,
            )
        return result

    async def run_preset(self, preset: Preset) -> list[DispatchResult]:
        results: list[DispatchResult] = []
        for idx, payload in enumerate(preset.payloads):
            label = preset.label if len(preset.payloads) == 1 else f"{preset.label}[{idx}]"
            results.append(await self.send(payload, label))
        return results

    async def close(self) -> tuple[Outcome, ...]:
        """Unsubscribe everything, then disconnect; individual failures are discarded.

        Unsubscribing is skipped once the device has dropped the link.
        """
        timeouts = self.profile.timeouts
        outcomes: list[Outcome] = []
        if self.selection is not None and not self.disconnected.is_set():
            for characteristic in self.selection.notify_targets:
                if characteristic.uuid not in self.subscribed:
                    continue
                outcomes.append(
                    await best_effort(
                        f"Unsubscribe {characteristic.uuid}",
                        self.link.unsubscribe(characteristic),
                        timeouts.unsubscribe_s,
                    )
                )
        if self.device is not None:
            outcomes.append(await best_effort("Disconnect", self.link.disconnect(), timeouts.disconnect_s))

        if self._drain_task is not None:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
            self._drain_task = None
        self.notifications.flush()

        self._dispatcher = None
        self.selection = None
        self.subscribed = []
        self.device = None
        return tuple(outcomes)
