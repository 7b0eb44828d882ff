"""Translation of application intents into radio adapter requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from blecentral.core.model import (
    Connect,
    ConnectionState,
    Disconnect,
    Event,
    Intent,
    ScanningChanged,
    Send,
    ServiceFilter,
    SetNotify,
    StartScanning,
    StopScanning,
)
from blecentral.core.registry import PeripheralRegistry
from blecentral.core.state_machine import AdapterCall
from blecentral.transports.base import RadioAdapter

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dispatch:
    calls: tuple[AdapterCall, ...] = ()
    events: tuple[Event, ...] = ()
    scanning: bool | None = None


class IntentProcessor:
    def __init__(
        self,
        registry: PeripheralRegistry,
        adapter: RadioAdapter,
        service_filter: ServiceFilter,
    ) -> None:
        self._registry = registry
        self._adapter = adapter
        self._filter = service_filter

    def process(self, intent: Intent) -> Dispatch:
        if isinstance(intent, StartScanning):
            # No power-state guard here; the adapter enforces it.
            return Dispatch(
                calls=(partial(self._adapter.start_scan, self._filter),),
                events=(ScanningChanged(active=True),),
                scanning=True,
            )
        if isinstance(intent, StopScanning):
            return Dispatch(
                calls=(self._adapter.stop_scan,),
                events=(ScanningChanged(active=False),),
                scanning=False,
            )
        if isinstance(intent, Send):
            return self._send(intent)
        if isinstance(intent, Connect):
            return self._connect(intent)
        if isinstance(intent, Disconnect):
            return self._disconnect(intent)
        if isinstance(intent, SetNotify):
            return self._set_notify(intent)
        raise TypeError(f"Unsupported intent: {intent!r}")

    def _connect(self, intent: Connect) -> Dispatch:
        record = self._registry.find(intent.peripheral_id)
        if record is None or record.connection_state is not ConnectionState.DISCOVERED:
            LOGGER.debug("Ignoring connect request for %s", intent.peripheral_id)
            return Dispatch()
        self._registry.transition(intent.peripheral_id, ConnectionState.CONNECTING)
        return Dispatch(calls=(partial(self._adapter.connect, intent.peripheral_id),))

    def _disconnect(self, intent: Disconnect) -> Dispatch:
        # The record only leaves its state when the adapter reports the disconnect.
        record = self._registry.find(intent.peripheral_id)
        if record is None or record.connection_state is ConnectionState.DISCOVERED:
            LOGGER.debug("Ignoring disconnect request for %s", intent.peripheral_id)
            return Dispatch()
        return Dispatch(calls=(partial(self._adapter.disconnect, intent.peripheral_id),))

    def _set_notify(self, intent: SetNotify) -> Dispatch:
        record = self._registry.find(intent.peripheral_id)
        known = record is not None and any(
            intent.characteristic_id in chars for chars in record.characteristics.values()
        )
        if not known:
            LOGGER.debug(
                "Dropping notify change for unresolved characteristic %s/%s",
                intent.peripheral_id,
                intent.characteristic_id,
            )
            return Dispatch()
        return Dispatch(
            calls=(
                partial(
                    self._adapter.set_notify,
                    intent.peripheral_id,
                    intent.characteristic_id,
                    intent.enabled,
                ),
            )
        )

    def _send(self, intent: Send) -> Dispatch:
        record = self._registry.find(intent.peripheral_id)
        if record is None or not record.snapshot().has_characteristic(
            intent.service_id, intent.characteristic_id
        ):
            LOGGER.debug(
                "Dropping send to unresolved target %s/%s/%s",
                intent.peripheral_id,
                intent.service_id,
                intent.characteristic_id,
            )
            return Dispatch()

        LOGGER.debug("Sending %d bytes to %s/%s", len(intent.payload), intent.peripheral_id, intent.characteristic_id)
        return Dispatch(
            calls=(
                partial(
                    self._adapter.write,
                    intent.peripheral_id,
                    intent.service_id,
                    intent.characteristic_id,
                    bytes(intent.payload),
                    with_response=False,
                ),
            )
        )
