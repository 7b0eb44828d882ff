"""Service layer used by the CLI and scripts on top of the controller."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from blecentral.core.channels import Subscription
from blecentral.core.controller import CentralController
from blecentral.core.errors import AdapterTimeoutError, ProfileResolutionError
from blecentral.core.model import (
    Connect,
    Event,
    PeripheralDiscovered,
    PeripheralSnapshot,
    Profile,
    Send,
    StartScanning,
    StopScanning,
)
from blecentral.core.profile_loader import load_profiles, normalize_uuid
from blecentral.transports.base import RadioAdapter
from blecentral.transports.bleak_adapter import BleakRadioAdapter

DEFAULT_PROFILE_ID = "generic"
_POLL_INTERVAL_S = 0.05
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    peripheral_id: str
    service_id: str
    characteristic_id: str
    payload_hex: str


class CentralService:
    def __init__(
        self,
        *,
        profile_id: str | None = None,
        adapter: RadioAdapter | None = None,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.profile = self.resolve_profile(profile_id)
        self.adapter = adapter or BleakRadioAdapter()
        self.controller = CentralController(
            self.adapter,
            self.profile.service_filter,
            policy=self.profile.policy,
        )
        self._started = False

    def list_profiles(self) -> list[Profile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    def resolve_profile(self, profile_id: str | None) -> Profile:
        wanted = profile_id or DEFAULT_PROFILE_ID
        profile = self.profiles.get(wanted)
        if profile is None:
            available = ", ".join(sorted(self.profiles))
            raise ProfileResolutionError(f"Unknown profile '{wanted}'. Available: {available}")
        return profile

    def start(self) -> None:
        if not self._started:
            self.adapter.start()
            self._started = True

    def close(self) -> None:
        self.controller.close()
        if self._started:
            self.adapter.close()
            self._started = False

    def __enter__(self) -> CentralService:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def subscribe(self, on_event: Callable[[Event], None]) -> Subscription:
        return self.controller.events.subscribe(on_event)

    def scan(self, duration_s: float, on_event: Callable[[Event], None]) -> list[PeripheralSnapshot]:
        """Scan for `duration_s`, forwarding every event, and return what was seen."""
        self.start()
        with self.subscribe(on_event):
            self.controller.send(StartScanning())
            try:
                time.sleep(duration_s)
            finally:
                self.controller.send(StopScanning())
        return self.controller.peripherals()

    def wait_for(
        self,
        predicate: Callable[[CentralController], bool],
        timeout_s: float,
        *,
        what: str = "condition",
    ) -> None:
        deadline = time.monotonic() + timeout_s
        while not predicate(self.controller):
            if time.monotonic() >= deadline:
                raise AdapterTimeoutError(f"Timed out after {timeout_s:g}s waiting for {what}")
            time.sleep(_POLL_INTERVAL_S)

    def send(
        self,
        peripheral_id: str,
        service_id: str,
        characteristic_id: str,
        payload: bytes,
        *,
        timeout_s: float = 10.0,
    ) -> SendResult:
        service_id = normalize_uuid(service_id, context="service")
        characteristic_id = normalize_uuid(characteristic_id, context="characteristic")

        def _resolved(controller: CentralController) -> bool:
            snapshot = controller.peripheral(peripheral_id)
            return snapshot is not None and snapshot.has_characteristic(service_id, characteristic_id)

        def _connect_target(event: Event) -> None:
            # Profiles without auto-connect still need a link to the target.
            if isinstance(event, PeripheralDiscovered) and event.peripheral_id == peripheral_id:
                self.controller.send(Connect(peripheral_id=peripheral_id))

        self.start()
        self.controller.send(Connect(peripheral_id=peripheral_id))
        with self.subscribe(_connect_target):
            self.controller.send(StartScanning())
            try:
                self.wait_for(
                    _resolved,
                    timeout_s,
                    what=f"{characteristic_id} on {peripheral_id}",
                )
                self.controller.send(
                    Send(
                        peripheral_id=peripheral_id,
                        service_id=service_id,
                        characteristic_id=characteristic_id,
                        payload=payload,
                    )
                )
            finally:
                self.controller.send(StopScanning())

        LOGGER.info("Sent %d bytes to %s", len(payload), peripheral_id)
        return SendResult(
            peripheral_id=peripheral_id,
            service_id=service_id,
            characteristic_id=characteristic_id,
            payload_hex=payload.hex(),
        )
