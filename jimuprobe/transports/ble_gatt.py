"""BLE GATT transport implementation on top of bleak."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from bleak import BleakClient, BleakScanner

from jimuprobe.core.errors import (
    DeviceDiscoveryError,
    TransportConnectError,
    TransportSendError,
)
from jimuprobe.core.model import Capability, CharacteristicInfo, DetectedDevice, ServiceInfo
from jimuprobe.transports.base import DisconnectCallback, NotifyCallback

LOGGER = logging.getLogger(__name__)


def _advertised_name(device: Any, adv: Any) -> str | None:
    return getattr(adv, "local_name", None) or getattr(device, "name", None) or None


class BleakLink:
    """One BLE connection at a time, plus the scanner used to find it."""

    def __init__(self, *, adapter: str | None = None) -> None:
        self.adapter = adapter
        self._client: BleakClient | None = None
        self._seen: dict[str, Any] = {}
        self._gatt_chars: dict[int, Any] = {}

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def _scanner_kwargs(self) -> dict[str, Any]:
        return {"adapter": self.adapter} if self.adapter else {}

    async def scan(
        self,
        *,
        timeout_s: float,
        match: Callable[[str | None], bool] | None = None,
        first_match: bool = False,
    ) -> list[DetectedDevice]:
        try:
            if first_match and match is not None:
                matched_names: dict[str, str | None] = {}

                def _filter(device: Any, adv: Any) -> bool:
                    name = _advertised_name(device, adv)
                    if not match(name):
                        return False
                    matched_names[device.address] = name
                    return True

                # Returns after the scanner has stopped.
                found = await BleakScanner.find_device_by_filter(
                    _filter,
                    timeout=timeout_s,
                    **self._scanner_kwargs(),
                )
                if found is None:
                    return []
                self._seen[found.address] = found
                name = matched_names.get(found.address, found.name)
                return [DetectedDevice(address=found.address, name=name)]

            discovered = await BleakScanner.discover(
                timeout=timeout_s,
                return_adv=True,
                **self._scanner_kwargs(),
            )
        except Exception as exc:
            raise DeviceDiscoveryError(f"BLE scan failed: {exc}") from exc

        devices: list[DetectedDevice] = []
        for address, (device, adv) in discovered.items():
            self._seen[address] = device
            name = _advertised_name(device, adv)
            LOGGER.debug("Found device %r %s", name or "", address)
            if match is not None and not match(name):
                continue
            devices.append(DetectedDevice(address=address, name=name, rssi=getattr(adv, "rssi", None)))
        return devices

    async def connect(
        self,
        address: str,
        *,
        timeout_s: float | None = None,
        on_disconnect: DisconnectCallback | None = None,
    ) -> None:
        target = self._seen.get(address, address)
        kwargs: dict[str, Any] = {}
        if timeout_s is not None:
            kwargs["timeout"] = timeout_s
        if self.adapter:
            kwargs["adapter"] = self.adapter

        def _on_disconnected(lost: BleakClient) -> None:
            # disconnect() forgets the client first, so only unexpected drops get here.
            if self._client is not lost:
                return
            self._client = None
            self._gatt_chars.clear()
            LOGGER.warning("BLE link to %s lost", address)
            if on_disconnect is not None:
                on_disconnect()

        client = BleakClient(target, disconnected_callback=_on_disconnected, **kwargs)
        try:
            await client.connect()
        except Exception as exc:
            raise TransportConnectError(f"BLE connect failed for {address}: {exc}") from exc
        if not client.is_connected:
            raise TransportConnectError(f"BLE connect failed for {address}")
        self._client = client

    def _require_client(self) -> BleakClient:
        if self._client is None:
            raise TransportConnectError("Not connected")
        return self._client

    async def discover(self) -> list[ServiceInfo]:
        client = self._require_client()
        self._gatt_chars.clear()
        services: list[ServiceInfo] = []
        for service in client.services:
            chars: list[CharacteristicInfo] = []
            for char in service.characteristics:
                self._gatt_chars[char.handle] = char
                chars.append(
                    CharacteristicInfo(
                        uuid=str(char.uuid).lower(),
                        service_uuid=str(service.uuid).lower(),
                        capabilities=Capability.from_properties(char.properties),
                        handle=char.handle,
                    )
                )
            services.append(ServiceInfo(uuid=str(service.uuid).lower(), characteristics=tuple(chars)))
        return services

    def _specifier(self, characteristic: CharacteristicInfo) -> Any:
        if characteristic.handle is not None and characteristic.handle in self._gatt_chars:
            return self._gatt_chars[characteristic.handle]
        return characteristic.uuid

    async def write(self, characteristic: CharacteristicInfo, data: bytes, *, without_response: bool) -> None:
        client = self._require_client()
        try:
            await client.write_gatt_char(
                self._specifier(characteristic),
                data,
                response=not without_response,
            )
        except Exception as exc:
            raise TransportSendError(f"BLE write to {characteristic.uuid} failed: {exc}") from exc

    async def subscribe(self, characteristic: CharacteristicInfo, callback: NotifyCallback) -> None:
        client = self._require_client()

        def _on_notify(_: Any, data: bytearray) -> None:
            callback(bytes(data))

        try:
            await client.start_notify(self._specifier(characteristic), _on_notify)
        except Exception as exc:
            raise TransportSendError(f"Subscribe {characteristic.uuid} failed: {exc}") from exc

    async def unsubscribe(self, characteristic: CharacteristicInfo) -> None:
        client = self._require_client()
        try:
            await client.stop_notify(self._specifier(characteristic))
        except Exception as exc:
            raise TransportSendError(f"Unsubscribe {characteristic.uuid} failed: {exc}") from exc

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        self._gatt_chars.clear()
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as exc:
            raise TransportConnectError(f"BLE disconnect failed: {exc}") from exc
