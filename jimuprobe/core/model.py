"""Core data models used across selector, dispatcher, session, and CLI."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass


class Capability(enum.Flag):
    NONE = 0
    READ = enum.auto()
    WRITE = enum.auto()
    WRITE_WITHOUT_RESPONSE = enum.auto()
    NOTIFY = enum.auto()
    INDICATE = enum.auto()

    @classmethod
    def from_properties(cls, properties: Iterable[str]) -> Capability:
        """Build a capability set from GATT property strings as reported by the BLE stack."""
        caps = cls.NONE
        for prop in properties:
            flag = _PROPERTY_FLAGS.get(prop.strip().lower())
            if flag is not None:
                caps |= flag
        return caps

    def names(self) -> tuple[str, ...]:
        return tuple(name for name, flag in _PROPERTY_FLAGS.items() if flag in self)


_PROPERTY_FLAGS = {
    "read": Capability.READ,
    "write": Capability.WRITE,
    "write-without-response": Capability.WRITE_WITHOUT_RESPONSE,
    "notify": Capability.NOTIFY,
    "indicate": Capability.INDICATE,
}

WRITABLE = Capability.WRITE | Capability.WRITE_WITHOUT_RESPONSE


@dataclass(frozen=True)
class CharacteristicInfo:
    uuid: str
    service_uuid: str
    capabilities: Capability
    handle: int | None = None

    @property
    def can_write(self) -> bool:
        return bool(self.capabilities & WRITABLE)

    @property
    def can_notify(self) -> bool:
        return Capability.NOTIFY in self.capabilities

    @property
    def prefers_without_response(self) -> bool:
        # Confirmed writes win whenever the characteristic offers them.
        return (
            Capability.WRITE_WITHOUT_RESPONSE in self.capabilities
            and Capability.WRITE not in self.capabilities
        )


@dataclass(frozen=True)
class ServiceInfo:
    uuid: str
    characteristics: tuple[CharacteristicInfo, ...]


@dataclass(frozen=True)
class DetectedDevice:
    address: str
    name: str | None
    rssi: int | None = None

    @property
    def label(self) -> str:
        return self.name or "Unknown"


@dataclass(frozen=True)
class CharacteristicSelection:
    write_candidates: tuple[CharacteristicInfo, ...]
    notify_targets: tuple[CharacteristicInfo, ...]
    target_service: str | None = None


@dataclass(frozen=True)
class WriteFailure:
    uuid: str
    message: str


@dataclass(frozen=True)
class DispatchResult:
    frame: bytes
    characteristic: CharacteristicInfo | None
    without_response: bool | None
    failures: tuple[WriteFailure, ...] = ()

    @property
    def success(self) -> bool:
        return self.characteristic is not None


@dataclass(frozen=True)
class NotificationEvent:
    sequence: int
    source: str
    payload: bytes
    arrival: int
    command: str | None = None


@dataclass(frozen=True)
class Preset:
    key: str
    label: str
    payloads: tuple[bytes, ...]


@dataclass(frozen=True)
class MatchRules:
    name_contains: str


@dataclass(frozen=True)
class ProtocolSpec:
    vendor_prefix: str
    preferred_writes: tuple[str, ...] = ()


@dataclass(frozen=True)
class Timeouts:
    connect_s: float | None = 10.0
    subscribe_s: float | None = 5.0
    unsubscribe_s: float | None = 3.0
    disconnect_s: float | None = 5.0
    write_s: float | None = None


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    match: MatchRules
    protocol: ProtocolSpec
    timeouts: Timeouts
    presets: dict[str, Preset]
    scan_timeout_s: float = 5.0
    quit_keys: tuple[str, ...] = ("q",)


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort step; a failed outcome is logged and then discarded."""

    action: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
