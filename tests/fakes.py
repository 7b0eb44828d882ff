from __future__ import annotations

from typing import Any

from blecentral.core.model import AdapterCallback, ServiceFilter

P1 = "AA:BB:CC:DD:EE:01"
P2 = "AA:BB:CC:DD:EE:02"
S1 = "0000180d-0000-1000-8000-00805f9b34fb"
S2 = "0000180f-0000-1000-8000-00805f9b34fb"
C1 = "00002a37-0000-1000-8000-00805f9b34fb"
C2 = "00002a38-0000-1000-8000-00805f9b34fb"


class FakeRadioAdapter:
    """Records every request and lets tests issue callbacks by hand."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.sink = None
        self.started = False
        self.closed = False

    def attach(self, sink) -> None:
        self.sink = sink

    def start(self) -> None:
        self.started = True

    def close(self) -> None:
        self.closed = True

    def start_scan(self, service_filter: ServiceFilter) -> None:
        self.calls.append(("start_scan", service_filter))

    def stop_scan(self) -> None:
        self.calls.append(("stop_scan",))

    def connect(self, peripheral_id: str) -> None:
        self.calls.append(("connect", peripheral_id))

    def disconnect(self, peripheral_id: str) -> None:
        self.calls.append(("disconnect", peripheral_id))

    def discover_services(self, peripheral_id: str, service_ids) -> None:
        self.calls.append(("discover_services", peripheral_id, service_ids))

    def discover_characteristics(self, peripheral_id: str, service_id: str) -> None:
        self.calls.append(("discover_characteristics", peripheral_id, service_id))

    def set_notify(self, peripheral_id: str, characteristic_id: str, enabled: bool) -> None:
        self.calls.append(("set_notify", peripheral_id, characteristic_id, enabled))

    def write(
        self,
        peripheral_id: str,
        service_id: str,
        characteristic_id: str,
        payload: bytes,
        *,
        with_response: bool = False,
    ) -> None:
        self.calls.append(("write", peripheral_id, service_id, characteristic_id, payload, with_response))

    def emit(self, callback: AdapterCallback) -> None:
        assert self.sink is not None, "adapter is not attached"
        self.sink(callback)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]


