"""Stable public API for building tooling on top of blecentral.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from typing import Callable

from blecentral.core.channels import CurrentValueChannel, EventChannel, Subscription
from blecentral.core.controller import CentralController
from blecentral.core.errors import (
    AdapterError,
    AdapterTimeoutError,
    AdapterUnavailableError,
    BleCentralError,
    ProfileLoadError,
    ProfileResolutionError,
    ProfileValidationError,
)
from blecentral.core.model import (
    AUTO_CONNECT,
    MANUAL,
    AdapterPowerState,
    Connect,
    ConnectionPolicy,
    ConnectionState,
    DataReceived,
    Disconnect,
    Event,
    Intent,
    PeripheralConnected,
    PeripheralDisconnected,
    PeripheralDiscovered,
    PeripheralSnapshot,
    Profile,
    ScanningChanged,
    Send,
    ServiceFilter,
    SetNotify,
    StartScanning,
    StopScanning,
)
from blecentral.core.service import CentralService, SendResult
from blecentral.transports.base import RadioAdapter
from blecentral.transports.bleak_adapter import BleakRadioAdapter

__all__ = [
    "BleCentralError",
    "ProfileLoadError",
    "ProfileResolutionError",
    "ProfileValidationError",
    "AdapterError",
    "AdapterTimeoutError",
    "AdapterUnavailableError",
    "AUTO_CONNECT",
    "MANUAL",
    "AdapterPowerState",
    "Connect",
    "ConnectionPolicy",
    "ConnectionState",
    "DataReceived",
    "Disconnect",
    "Event",
    "Intent",
    "PeripheralConnected",
    "PeripheralDisconnected",
    "PeripheralDiscovered",
    "PeripheralSnapshot",
    "Profile",
    "ScanningChanged",
    "Send",
    "SendResult",
    "ServiceFilter",
    "SetNotify",
    "StartScanning",
    "StopScanning",
    "CentralController",
    "CurrentValueChannel",
    "EventChannel",
    "Subscription",
    "RadioAdapter",
    "BleakRadioAdapter",
    "Client",
]


class Client:
    """Public client for driving a BLE central controller.

    A `Client` wraps profile loading, adapter construction, and the controller's
    intent/event/state channels behind a stable API intended for third-party
    tools (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        *,
        profile_id: str | None = None,
        adapter: RadioAdapter | None = None,
    ) -> None:
        self._service = CentralService(profile_id=profile_id, adapter=adapter)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def profile(self) -> Profile:
        return self._service.profile

    @property
    def controller(self) -> CentralController:
        return self._service.controller

    @property
    def events(self) -> EventChannel[Event]:
        return self._service.controller.events

    @property
    def power_state(self) -> CurrentValueChannel[AdapterPowerState]:
        return self._service.controller.state

    def list_profiles(self) -> list[Profile]:
        return self._service.list_profiles()

    def peripherals(self) -> list[PeripheralSnapshot]:
        return self._service.controller.peripherals()

    def start(self) -> None:
        self._service.start()

    def close(self) -> None:
        self._service.close()

    def __enter__(self) -> Client:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def start_scanning(self) -> None:
        self._service.controller.send(StartScanning())

    def stop_scanning(self) -> None:
        self._service.controller.send(StopScanning())

    def send(
        self,
        peripheral_id: str,
        service_id: str,
        characteristic_id: str,
        payload: bytes,
    ) -> None:
        """Queue a fire-and-forget write; unresolved targets are dropped silently."""
        self._service.controller.send(
            Send(
                peripheral_id=peripheral_id,
                service_id=service_id,
                characteristic_id=characteristic_id,
                payload=payload,
            )
        )

    def connect(self, peripheral_id: str) -> None:
        """Connect to a discovered peripheral; needed under a manual policy."""
        self._service.controller.send(Connect(peripheral_id=peripheral_id))

    def disconnect(self, peripheral_id: str) -> None:
        self._service.controller.send(Disconnect(peripheral_id=peripheral_id))

    def set_notify(self, peripheral_id: str, characteristic_id: str, enabled: bool = True) -> None:
        self._service.controller.send(
            SetNotify(
                peripheral_id=peripheral_id,
                characteristic_id=characteristic_id,
                enabled=enabled,
            )
        )

    def scan(self, duration_s: float, on_event: Callable[[Event], None]) -> list[PeripheralSnapshot]:
        return self._service.scan(duration_s, on_event)

    def send_when_ready(
        self,
        peripheral_id: str,
        service_id: str,
        characteristic_id: str,
        payload: bytes,
        *,
        timeout_s: float = 10.0,
    ) -> SendResult:
        return self._service.send(
            peripheral_id,
            service_id,
            characteristic_id,
            payload,
            timeout_s=timeout_s,
        )
