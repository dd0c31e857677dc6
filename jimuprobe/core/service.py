"""Service layer used by CLI and the public API."""

from __future__ import annotations

import logging
from functools import partial

from jimuprobe.core.device_match import name_matches, pick_device
from jimuprobe.core.errors import DeviceSelectionError, JimuProbeError
from jimuprobe.core.model import DetectedDevice, Profile
from jimuprobe.core.notify_log import NotificationLogger
from jimuprobe.core.profile_loader import load_profiles
from jimuprobe.core.session import ProbeSession
from jimuprobe.transports.base import BLELink

LOGGER = logging.getLogger(__name__)

DEFAULT_PROFILE = "jimu"


class ProbeService:
    def __init__(self, *, link: BLELink | None = None) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self._link = link

    @property
    def link(self) -> BLELink:
        if self._link is None:
            from jimuprobe.transports.ble_gatt import BleakLink

            self._link = BleakLink()
        return self._link

    def list_profiles(self) -> list[Profile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    def get_profile(self, profile_id: str | None = None) -> Profile:
        profile_id = profile_id or DEFAULT_PROFILE
        profile = self.profiles.get(profile_id)
        if profile is None:
            available = ", ".join(sorted(self.profiles))
            raise JimuProbeError(f"Unknown profile '{profile_id}'. Available: {available}")
        return profile

    async def scan(
        self,
        profile_id: str | None = None,
        *,
        timeout_s: float | None = None,
        matched_only: bool = False,
    ) -> list[DetectedDevice]:
        profile = self.get_profile(profile_id)
        LOGGER.info("Scanning for devices (%.1fs)...", timeout_s or profile.scan_timeout_s)
        match = partial(name_matches, target=profile.match.name_contains) if matched_only else None
        return await self.link.scan(timeout_s=timeout_s or profile.scan_timeout_s, match=match)

    async def resolve_device(
        self,
        profile_id: str | None = None,
        device_hint: str | None = None,
        *,
        timeout_s: float | None = None,
    ) -> DetectedDevice:
        profile = self.get_profile(profile_id)
        target = profile.match.name_contains
        match = partial(name_matches, target=target)
        scan_timeout = timeout_s or profile.scan_timeout_s

        if device_hint:
            devices = await self.link.scan(timeout_s=scan_timeout, match=match)
            device = pick_device(devices, device_hint)
            if device is None:
                raise DeviceSelectionError(f"No '{target}' device found matching '{device_hint}'")
        else:
            devices = await self.link.scan(timeout_s=scan_timeout, match=match, first_match=True)
            device = pick_device(devices)
            if device is None:
                raise DeviceSelectionError(
                    f"No '{target}' device detected. Make sure it is on, advertising, "
                    "and not connected to another app."
                )

        LOGGER.info("Matched target %s (%s)", device.label, device.address)
        return device

    async def open_session(
        self,
        profile_id: str | None = None,
        device_hint: str | None = None,
        *,
        notifications: NotificationLogger | None = None,
    ) -> ProbeSession:
        profile = self.get_profile(profile_id)
        device = await self.resolve_device(profile.id, device_hint)
        session = ProbeSession(self.link, profile, notifications=notifications)
        try:
            await session.open(device)
        except BaseException:
            await session.close()
            raise
        return session
