"""Radio adapter interfaces."""

from __future__ import annotations

from typing import Callable, Protocol

from blecentral.core.model import AdapterCallback, CharacteristicId, PeripheralId, ServiceFilter, ServiceId

CallbackSink = Callable[[AdapterCallback], None]


class RadioAdapter(Protocol):
    """Platform BLE stack as seen by the controller.

    Every request is non-blocking; results arrive later through the sink passed
    to `attach`, one callback at a time.
    """

    def attach(self, sink: CallbackSink | None) -> None:
        """Route adapter callbacks to `sink` (`None` detaches)."""

    def start(self) -> None:
        """Bring the radio up; the power state arrives as a callback."""

    def close(self) -> None:
        """Release the radio and every connection."""

    def start_scan(self, service_filter: ServiceFilter) -> None: ...

    def stop_scan(self) -> None: ...

    def connect(self, peripheral_id: PeripheralId) -> None: ...

    def disconnect(self, peripheral_id: PeripheralId) -> None: ...

    def discover_services(
        self,
        peripheral_id: PeripheralId,
        service_ids: frozenset[ServiceId] | None,
    ) -> None: ...

    def discover_characteristics(self, peripheral_id: PeripheralId, service_id: ServiceId) -> None: ...

    def set_notify(
        self,
        peripheral_id: PeripheralId,
        characteristic_id: CharacteristicId,
        enabled: bool,
    ) -> None: ...

    def write(
        self,
        peripheral_id: PeripheralId,
        service_id: ServiceId,
        characteristic_id: CharacteristicId,
        payload: bytes,
        *,
        with_response: bool = False,
    ) -> None: ...
