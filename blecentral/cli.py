"""Typer CLI entrypoint."""

from __future__ import annotations

import logging

import typer

from blecentral.core.errors import BleCentralError
from blecentral.core.model import (
    DataReceived,
    Event,
    PeripheralConnected,
    PeripheralDisconnected,
    PeripheralDiscovered,
    ScanningChanged,
)
from blecentral.core.service import CentralService

app = typer.Typer(help="BLE central controller: scan, auto-connect, subscribe, and send")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service(profile_id: str | None = None) -> CentralService:
    service = CentralService(profile_id=profile_id)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def describe_event(event: Event) -> str:
    if isinstance(event, PeripheralDiscovered):
        return f"discovered {event.peripheral_id}"
    if isinstance(event, PeripheralConnected):
        return f"connected {event.peripheral_id}"
    if isinstance(event, PeripheralDisconnected):
        return f"disconnected {event.peripheral_id}"
    if isinstance(event, DataReceived):
        return f"data {event.peripheral_id} {event.characteristic_id} {event.payload.hex()}"
    if isinstance(event, ScanningChanged):
        return f"scanning {'on' if event.active else 'off'}"
    return repr(event)


def _parse_hex(value: str) -> bytes:
    normalized = value.strip().lower().replace(" ", "")
    try:
        payload = bytes.fromhex(normalized)
    except ValueError:
        raise typer.BadParameter(f"'{value}' is not valid hex") from None
    if not payload:
        raise typer.BadParameter("payload must not be empty")
    return payload


@app.command("profiles")
def list_profiles() -> None:
    """List available profiles and the GATT objects they select."""
    try:
        service = _build_service()
        profiles = service.list_profiles()
        if not profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile in profiles:
            typer.echo(f"{profile.id}: {profile.name}")
            services = ", ".join(sorted(profile.service_filter.service_ids)) or "<any>"
            characteristics = ", ".join(sorted(profile.service_filter.characteristic_ids)) or "<none>"
            typer.echo(f"  services: {services}")
            typer.echo(f"  characteristics: {characteristics}")
            if not profile.policy.connect_on_discovery:
                typer.echo("  auto-connect: off")
    except BleCentralError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan(
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    duration: float = typer.Option(10.0, "--duration", min=0.0, help="Seconds to scan"),
) -> None:
    """Scan with the profile's connection policy and print events as they arrive."""
    try:
        service = _build_service(profile)
        try:
            peripherals = service.scan(duration, lambda event: typer.echo(describe_event(event)))
        finally:
            service.close()
        typer.echo(f"{len(peripherals)} peripheral(s) seen")
        for peripheral in peripherals:
            subscribed = ", ".join(sorted(peripheral.subscribed_characteristics)) or "-"
            typer.echo(f"  {peripheral.id} {peripheral.connection_state.value} subscribed={subscribed}")
    except BleCentralError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("send")
def send(
    peripheral: str,
    service_uuid: str,
    characteristic_uuid: str,
    payload: str,
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
    timeout: float = typer.Option(10.0, "--timeout", min=0.0, help="Seconds to wait for the target"),
) -> None:
    """Write PAYLOAD (hex) without response once the characteristic is discovered."""
    data = _parse_hex(payload)
    try:
        service = _build_service(profile)
        try:
            result = service.send(
                peripheral,
                service_uuid,
                characteristic_uuid,
                data,
                timeout_s=timeout,
            )
        finally:
            service.close()
        typer.echo(
            f"Sent payload={result.payload_hex} to {result.peripheral_id} "
            f"{result.service_id}/{result.characteristic_id}"
        )
    except BleCentralError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
