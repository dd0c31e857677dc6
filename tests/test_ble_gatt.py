from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from jimuprobe.core.errors import TransportConnectError, TransportSendError
from jimuprobe.core.model import Capability
from jimuprobe.transports import ble_gatt
from jimuprobe.transports.ble_gatt import BleakLink

SVC = "49535343-FE7D-4AE5-8FA9-9FAFD205E455"


class FakeBleakClient:
    def __init__(self) -> None:
        self.is_connected = True
        self.writes: list[tuple[object, bytes, bool]] = []
        self.fail = False
        write_char = SimpleNamespace(
            uuid="49535343-8841-43F4-A8D4-ECBE34729BB3",
            properties=["write", "write-without-response"],
            handle=14,
        )
        notify_char = SimpleNamespace(
            uuid="49535343-1e4d-4bd9-ba61-23c647249616",
            properties=["notify", "broadcast"],
            handle=10,
        )
        self.services = [SimpleNamespace(uuid=SVC, characteristics=[write_char, notify_char])]
        self.handlers = {}

    async def write_gatt_char(self, char, data, response):
        if self.fail:
            raise RuntimeError("GATT error 0x03")
        self.writes.append((char, data, response))

    async def start_notify(self, char, callback):
        self.handlers[char.handle] = callback

    async def disconnect(self):
        raise RuntimeError("not connected")


def _link_with(client: FakeBleakClient) -> BleakLink:
    link = BleakLink()
    link._client = client
    return link


def test_discover_converts_bleak_services() -> None:
    link = _link_with(FakeBleakClient())

    services = asyncio.run(link.discover())

    assert services[0].uuid == SVC.lower()
    write_char, notify_char = services[0].characteristics
    assert write_char.uuid == "49535343-8841-43f4-a8d4-ecbe34729bb3"
    assert write_char.capabilities == Capability.WRITE | Capability.WRITE_WITHOUT_RESPONSE
    assert notify_char.capabilities == Capability.NOTIFY
    assert notify_char.service_uuid == SVC.lower()


def test_write_uses_discovered_characteristic_and_mode() -> None:
    client = FakeBleakClient()
    link = _link_with(client)

    async def scenario() -> None:
        services = await link.discover()
        await link.write(services[0].characteristics[0], b"\x01", without_response=True)

    asyncio.run(scenario())

    char, data, response = client.writes[0]
    assert char.handle == 14
    assert data == b"\x01"
    assert response is False


def test_write_errors_become_transport_errors() -> None:
    client = FakeBleakClient()
    client.fail = True
    link = _link_with(client)

    async def scenario() -> None:
        services = await link.discover()
        await link.write(services[0].characteristics[0], b"\x01", without_response=False)

    with pytest.raises(TransportSendError):
        asyncio.run(scenario())


def test_notifications_are_delivered_as_bytes() -> None:
    client = FakeBleakClient()
    link = _link_with(client)
    received: list[bytes] = []

    async def scenario() -> None:
        services = await link.discover()
        await link.subscribe(services[0].characteristics[1], received.append)

    asyncio.run(scenario())
    client.handlers[10](None, bytearray(b"\xfb\xbf"))

    assert received == [b"\xfb\xbf"]


def test_disconnect_failure_is_wrapped_and_forgets_client() -> None:
    link = _link_with(FakeBleakClient())

    with pytest.raises(TransportConnectError):
        asyncio.run(link.disconnect())
    assert not link.is_connected


def test_operations_require_connection() -> None:
    with pytest.raises(TransportConnectError):
        asyncio.run(BleakLink().discover())


class ConnectingBleakClient(FakeBleakClient):
    def __init__(self, target, disconnected_callback=None, **kwargs) -> None:
        super().__init__()
        self.target = target
        self.disconnected_callback = disconnected_callback

    async def connect(self):
        return None

    async def disconnect(self):
        self.is_connected = False
        self.disconnected_callback(self)


def test_peripheral_drop_reaches_disconnect_callback(monkeypatch) -> None:
    created: list[ConnectingBleakClient] = []

    def _client(target, **kwargs):
        client = ConnectingBleakClient(target, **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(ble_gatt, "BleakClient", _client)
    lost: list[bool] = []
    link = BleakLink()

    asyncio.run(link.connect("AA:BB:CC:00:11:22", on_disconnect=lambda: lost.append(True)))
    client = created[0]
    assert client.target == "AA:BB:CC:00:11:22"
    assert link.is_connected

    client.disconnected_callback(client)

    assert lost == [True]
    assert not link.is_connected


def test_own_disconnect_does_not_report_link_loss(monkeypatch) -> None:
    monkeypatch.setattr(ble_gatt, "BleakClient", ConnectingBleakClient)
    lost: list[bool] = []
    link = BleakLink()

    async def scenario() -> None:
        await link.connect("AA:BB:CC:00:11:22", on_disconnect=lambda: lost.append(True))
        await link.disconnect()

    asyncio.run(scenario())

    assert lost == []
    assert not link.is_connected
