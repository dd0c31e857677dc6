"""Pick write and notify characteristics on a freshly discovered peripheral."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from jimuprobe.core.errors import SelectionError
from jimuprobe.core.model import CharacteristicInfo, CharacteristicSelection, ProtocolSpec, ServiceInfo

LOGGER = logging.getLogger(__name__)


def normalize_uuid(uuid: str) -> str:
    return uuid.strip().lower().replace("-", "")


def find_target_service(services: Sequence[ServiceInfo], vendor_prefix: str) -> ServiceInfo | None:
    prefix = normalize_uuid(vendor_prefix)
    if not prefix:
        return None
    for service in services:
        if normalize_uuid(service.uuid).startswith(prefix):
            return service
    return None


def _first_with_uuid(characteristics: Sequence[CharacteristicInfo], uuid: str) -> CharacteristicInfo | None:
    wanted = normalize_uuid(uuid)
    for characteristic in characteristics:
        if normalize_uuid(characteristic.uuid) == wanted:
            return characteristic
    return None


def _write_candidates(
    characteristics: Sequence[CharacteristicInfo],
    scoped: Sequence[CharacteristicInfo],
    preferred_writes: Sequence[str],
) -> list[CharacteristicInfo]:
    ordered: list[CharacteristicInfo] = []

    for uuid in preferred_writes:
        known = _first_with_uuid(characteristics, uuid)
        if known is not None and known.can_write and known not in ordered:
            ordered.append(known)

    for pool in (scoped, characteristics):
        for characteristic in pool:
            if characteristic.can_write and characteristic not in ordered:
                ordered.append(characteristic)

    return ordered


def select_characteristics(services: Sequence[ServiceInfo], protocol: ProtocolSpec) -> CharacteristicSelection:
    """Rank write candidates and choose notify targets for one connection.

    Write candidates come from the preferred UUID list first, then the vendor
    service, then everything else that is writable. Notify targets come from the
    vendor service, or from the whole peripheral when the vendor service has none.
    """
    characteristics = [c for service in services for c in service.characteristics]
    target = find_target_service(services, protocol.vendor_prefix)
    scoped = list(target.characteristics) if target else []

    writes = _write_candidates(characteristics, scoped, protocol.preferred_writes)
    notifies = [c for c in scoped if c.can_notify]
    if not notifies:
        if target is not None:
            LOGGER.info("Service %s has no notify characteristics, using all services", target.uuid)
        notifies = [c for c in characteristics if c.can_notify]

    if not writes or not notifies:
        raise SelectionError(
            f"Could not find write/notify characteristics "
            f"(write candidates: {len(writes)}, notify targets: {len(notifies)})"
        )

    return CharacteristicSelection(
        write_candidates=tuple(writes),
        notify_targets=tuple(notifies),
        target_service=target.uuid if target else None,
    )
