"""Peripheral-to-profile matching logic."""

from __future__ import annotations

from collections.abc import Iterable

from jimuprobe.core.model import DetectedDevice


def name_matches(name: str | None, target: str) -> bool:
    if not name:
        return False
    return target.lower() in name.lower()


def matching_devices(devices: Iterable[DetectedDevice], target: str) -> list[DetectedDevice]:
    return [device for device in devices if name_matches(device.name, target)]


def _hint_score(device: DetectedDevice, hint: str) -> int:
    address = device.address.lower()
    name = (device.name or "").lower()
    if hint in (address, name):
        return 2
    if hint in address or (name and hint in name):
        return 1
    return 0


def pick_device(devices: Iterable[DetectedDevice], hint: str | None = None) -> DetectedDevice | None:
    """Pick the device an operator hint refers to, or the first one without a hint."""
    candidates = list(devices)
    if not hint:
        return candidates[0] if candidates else None

    lowered = hint.lower()
    best: DetectedDevice | None = None
    best_score = 0
    for device in candidates:
        score = _hint_score(device, lowered)
        if score > best_score:
            best = device
            best_score = score
    return best
