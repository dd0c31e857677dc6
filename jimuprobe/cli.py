"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from collections.abc import AsyncIterator

import typer

from jimuprobe.core import frame
from jimuprobe.core.device_match import name_matches
from jimuprobe.core.errors import JimuProbeError
from jimuprobe.core.frame import FrameAssembler
from jimuprobe.core.model import DispatchResult
from jimuprobe.core.notify_log import NotificationLogger
from jimuprobe.core.operator import ActionKind, controls_help, parse_payload_hex, resolve_input
from jimuprobe.core.service import ProbeService

app = typer.Typer(help="Probe the JIMU robot BLE protocol: scan, frame commands, log notifications")


def _build_service() -> ProbeService:
    service = ProbeService()
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Python logging level"),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _set_log_level(log_level: str | None) -> None:
    if log_level:
        logging.getLogger().setLevel(getattr(logging, log_level.upper(), logging.INFO))


@app.command("profiles")
def list_profiles() -> None:
    """List device profiles and their command presets."""
    try:
        service = _build_service()
        profiles = service.list_profiles()
        if not profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile in profiles:
            typer.echo(f"{profile.id}: {profile.name} (name contains '{profile.match.name_contains}')")
            for key, preset in profile.presets.items():
                payloads = " + ".join(p.hex() for p in preset.payloads)
                typer.echo(f"  {key}: {preset.label} [{payloads}]")
    except JimuProbeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan_devices(
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    timeout: float | None = typer.Option(None, "--timeout", help="Scan window in seconds"),
    log_level: str | None = typer.Option(None, "--log-level", help="Python logging level"),
) -> None:
    """Scan for BLE peripherals and mark the ones the profile would probe."""
    _set_log_level(log_level)
    try:
        service = _build_service()
        target = service.get_profile(profile)
        devices = asyncio.run(service.scan(target.id, timeout_s=timeout))
        if not devices:
            typer.echo("No BLE devices found")
            return

        for device in devices:
            marker = "*" if name_matches(device.name, target.match.name_contains) else " "
            rssi = f" rssi={device.rssi}" if device.rssi is not None else ""
            typer.echo(f"{marker} {device.address} \"{device.name or ''}\"{rssi}")
    except JimuProbeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("frame")
def encode_frame(payload: str = typer.Argument(..., help="Command payload as hex")) -> None:
    """Print the wire frame for a command payload."""
    try:
        typer.echo(frame.encode(parse_payload_hex(payload)).hex())
    except JimuProbeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode_capture(capture: str = typer.Argument(..., help="Captured notification bytes as hex")) -> None:
    """Split captured bytes into frames and check each one."""
    try:
        data = bytes.fromhex(capture.replace(" ", ""))
    except ValueError:
        typer.echo(f"Error: '{capture}' is not valid hex", err=True)
        raise typer.Exit(code=1) from None

    assembler = FrameAssembler()
    frames = assembler.feed(data)
    if not frames:
        typer.echo("No frames found")
    for decoded in frames:
        line = f"{decoded.status.value}: {decoded.raw.hex()}"
        if decoded.payload:
            line += f" payload={decoded.payload.hex()}"
        if decoded.reason:
            line += f" ({decoded.reason})"
        typer.echo(line)
    if assembler.pending:
        typer.echo(f"incomplete: {assembler.pending.hex()}")


async def _stdin_lines() -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[str] = asyncio.Queue()

    def _pump() -> None:
        try:
            for line in sys.stdin:
                loop.call_soon_threadsafe(queue.put_nowait, line)
            loop.call_soon_threadsafe(queue.put_nowait, "")
        except RuntimeError:
            # Event loop already closed.
            return

    threading.Thread(target=_pump, name="jimuprobe-stdin", daemon=True).start()
    while True:
        line = await queue.get()
        if not line:
            return
        yield line


async def _until_disconnected(lines: AsyncIterator[str], disconnected: asyncio.Event) -> AsyncIterator[str]:
    """Yield operator lines until input ends or the device drops the link."""
    lost = asyncio.ensure_future(disconnected.wait())
    try:
        while not disconnected.is_set():
            pending = asyncio.ensure_future(anext(lines))
            await asyncio.wait({pending, lost}, return_when=asyncio.FIRST_COMPLETED)
            if not pending.done():
                pending.cancel()
                return
            try:
                line = pending.result()
            except StopAsyncIteration:
                return
            yield line
    finally:
        lost.cancel()


def _report(result: DispatchResult, label: str) -> None:
    if result.success:
        typer.echo(f"=> Sent {label} via {result.characteristic.uuid} frame={result.frame.hex()}")
    else:
        typer.echo(
            f"Send failed: {label}, all {len(result.failures)} write candidates failed",
            err=True,
        )


async def _probe(service: ProbeService, profile_id: str | None, device_hint: str | None) -> None:
    profile = service.get_profile(profile_id)
    session = await service.open_session(
        profile.id,
        device_hint,
        notifications=NotificationLogger(emit=typer.echo),
    )
    typer.echo(controls_help(profile))
    try:
        async for line in _until_disconnected(_stdin_lines(), session.disconnected):
            action = resolve_input(line.rstrip("\r\n"), profile)
            if action.kind is ActionKind.QUIT:
                break
            if action.kind is ActionKind.PRESET:
                for result in await session.run_preset(action.preset):
                    _report(result, action.preset.label)
            elif action.kind is ActionKind.RAW:
                _report(await session.send(action.payload, "raw"), "raw")
            else:
                typer.echo(f"Unknown key {action.text.strip()!r} {action.raw_bytes}")
        if session.disconnected.is_set():
            typer.echo("Device disconnected")
    finally:
        typer.echo("Exiting...")
        await session.close()


@app.command("probe")
def probe(
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    device: str | None = typer.Option(None, "--device", help="Address or partial name"),
    log_level: str | None = typer.Option(None, "--log-level", help="Python logging level"),
) -> None:
    """Connect to a device and send presets interactively, logging all notifications."""
    _set_log_level(log_level)
    try:
        service = _build_service()
        asyncio.run(_probe(service, profile, device))
    except KeyboardInterrupt:
        typer.echo("Interrupted")
    except JimuProbeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
