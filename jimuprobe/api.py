"""Stable public API for building tooling on top of jimuprobe.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from jimuprobe.core import frame
from jimuprobe.core.errors import (
    DeviceDiscoveryError,
    DeviceSelectionError,
    FrameError,
    JimuProbeError,
    ProfileLoadError,
    ProfileValidationError,
    SelectionError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
)
from jimuprobe.core.frame import DecodedFrame, FrameAssembler, FrameStatus
from jimuprobe.core.model import (
    Capability,
    CharacteristicInfo,
    CharacteristicSelection,
    DetectedDevice,
    DispatchResult,
    NotificationEvent,
    Preset,
    Profile,
    ServiceInfo,
)
from jimuprobe.core.notify_log import NotificationLogger
from jimuprobe.core.selector import select_characteristics
from jimuprobe.core.service import ProbeService
from jimuprobe.core.session import ProbeSession
from jimuprobe.transports.base import BLELink

__all__ = [
    "JimuProbeError",
    "DeviceDiscoveryError",
    "DeviceSelectionError",
    "FrameError",
    "ProfileLoadError",
    "ProfileValidationError",
    "SelectionError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "BLELink",
    "Capability",
    "CharacteristicInfo",
    "CharacteristicSelection",
    "DecodedFrame",
    "DetectedDevice",
    "DispatchResult",
    "FrameAssembler",
    "FrameStatus",
    "NotificationEvent",
    "NotificationLogger",
    "Preset",
    "Profile",
    "ProbeSession",
    "ServiceInfo",
    "select_characteristics",
    "Client",
]


class Client:
    """Public client for interacting with jimuprobe core capabilities.

    A `Client` instance wraps profile loading, scanning/matching, and session
    setup behind a stable API intended for third-party tools (scripts, notebooks,
    other frontends). Pass a custom `link` to drive something other than bleak.
    """

    def __init__(self, *, link: BLELink | None = None) -> None:
        self._service = ProbeService(link=link)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_profiles(self) -> list[Profile]:
        return self._service.list_profiles()

    def get_profile(self, profile_id: str | None = None) -> Profile:
        return self._service.get_profile(profile_id)

    async def scan(
        self,
        profile_id: str | None = None,
        *,
        timeout_s: float | None = None,
        matched_only: bool = False,
    ) -> list[DetectedDevice]:
        return await self._service.scan(profile_id, timeout_s=timeout_s, matched_only=matched_only)

    async def open_session(
        self,
        profile_id: str | None = None,
        device_hint: str | None = None,
        *,
        notifications: NotificationLogger | None = None,
    ) -> ProbeSession:
        return await self._service.open_session(
            profile_id,
            device_hint,
            notifications=notifications,
        )

    @staticmethod
    def encode_frame(payload: bytes) -> bytes:
        return frame.encode(payload)

    @staticmethod
    def decode_frame(data: bytes) -> DecodedFrame:
        return frame.decode(data)
