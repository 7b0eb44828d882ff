"""Radio adapter backed by bleak.

All bleak work runs on one asyncio loop owned by a daemon thread, so adapter
callbacks reach the controller one at a time from that thread. Requests coming
from other threads are scheduled onto the loop and return immediately.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from typing import Any

from blecentral.core.errors import AdapterUnavailableError
from blecentral.core.model import (
    AdapterCallback,
    AdapterPowerState,
    CharacteristicId,
    CharacteristicsDiscovered,
    Connected,
    ConnectFailed,
    Disconnected,
    Discovered,
    NotifyStateChanged,
    PeripheralId,
    PowerStateChanged,
    ServiceFilter,
    ServiceId,
    ServicesDiscovered,
    ValueUpdated,
)
from blecentral.transports.base import CallbackSink

LOGGER = logging.getLogger(__name__)


def _require_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise AdapterUnavailableError(
            "BLE adapter requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


class BleakEventLoop:
    """Asyncio event loop running in a daemon thread."""

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_started(self) -> bool:
        return self._loop is not None

    def start(self) -> None:
        if self._loop is not None:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="blecentral-bleak", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        assert self._loop is not None
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def stop(self) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        if self._loop is not None and not self._loop.is_running():
            self._loop.close()
        self._loop = None
        self._thread = None

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        if self._loop is None:
            coro.close()
            raise AdapterUnavailableError("BLE event loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)


class BleakRadioAdapter:
    def __init__(self, *, connect_timeout_s: float = 10.0) -> None:
        self._connect_timeout_s = connect_timeout_s
        self._loop = BleakEventLoop()
        self._sink: CallbackSink | None = None
        self._scanner: Any = None
        # Only touched from the loop thread.
        self._devices: dict[PeripheralId, Any] = {}
        self._clients: dict[PeripheralId, Any] = {}

    def attach(self, sink: CallbackSink | None) -> None:
        self._sink = sink

    def _emit(self, callback: AdapterCallback) -> None:
        sink = self._sink
        if sink is not None:
            sink(callback)

    def start(self) -> None:
        """Start the loop thread and report `POWERED_ON`.

        bleak exposes no portable radio power query, so the report is
        optimistic. When the first scan cannot start, `POWERED_OFF` follows.
        """
        _require_bleak()
        self._loop.start()
        self._submit(self._report_power(AdapterPowerState.POWERED_ON))

    def close(self) -> None:
        if not self._loop.is_started:
            return
        future = self._loop.submit(self._shutdown())
        try:
            future.result(timeout=10.0)
        except concurrent.futures.TimeoutError:
            LOGGER.warning("Timed out shutting down BLE adapter")
        self._loop.stop()

    def __enter__(self) -> BleakRadioAdapter:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        future = self._loop.submit(coro)
        future.add_done_callback(_log_failure)

    # RadioAdapter requests

    def start_scan(self, service_filter: ServiceFilter) -> None:
        service_uuids = sorted(service_filter.service_ids) or None
        self._submit(self._start_scan(service_uuids))

    def stop_scan(self) -> None:
        self._submit(self._stop_scan())

    def connect(self, peripheral_id: PeripheralId) -> None:
        self._submit(self._connect(peripheral_id))

    def disconnect(self, peripheral_id: PeripheralId) -> None:
        self._submit(self._disconnect(peripheral_id))

    def discover_services(
        self,
        peripheral_id: PeripheralId,
        service_ids: frozenset[ServiceId] | None,
    ) -> None:
        self._submit(self._discover_services(peripheral_id, service_ids))

    def discover_characteristics(self, peripheral_id: PeripheralId, service_id: ServiceId) -> None:
        self._submit(self._discover_characteristics(peripheral_id, service_id))

    def set_notify(
        self,
        peripheral_id: PeripheralId,
        characteristic_id: CharacteristicId,
        enabled: bool,
    ) -> None:
        self._submit(self._set_notify(peripheral_id, characteristic_id, enabled))

    def write(
        self,
        peripheral_id: PeripheralId,
        service_id: ServiceId,
        characteristic_id: CharacteristicId,
        payload: bytes,
        *,
        with_response: bool = False,
    ) -> None:
        self._submit(self._write(peripheral_id, service_id, characteristic_id, payload, with_response))

    # Loop-thread coroutines

    async def _report_power(self, state: AdapterPowerState) -> None:
        self._emit(PowerStateChanged(state=state))

    async def _start_scan(self, service_uuids: list[str] | None) -> None:
        bleak = _require_bleak()
        if self._scanner is None:
            self._scanner = bleak.BleakScanner(
                detection_callback=self._on_detection,
                service_uuids=service_uuids,
            )
        try:
            await self._scanner.start()
        except bleak.exc.BleakError as exc:
            LOGGER.warning("Could not start BLE scan: %s", exc)
            self._scanner = None
            self._emit(PowerStateChanged(state=AdapterPowerState.POWERED_OFF))

    async def _stop_scan(self) -> None:
        if self._scanner is None:
            return
        scanner, self._scanner = self._scanner, None
        await scanner.stop()

    def _on_detection(self, device: Any, _advertisement: Any) -> None:
        peripheral_id = device.address
        self._devices[peripheral_id] = device
        client = self._clients.get(peripheral_id)
        self._emit(
            Discovered(
                peripheral_id=peripheral_id,
                is_connected=client is not None and client.is_connected,
            )
        )

    def _on_client_disconnected(self, client: Any) -> None:
        peripheral_id = client.address
        if self._clients.get(peripheral_id) is client:
            del self._clients[peripheral_id]
        self._emit(Disconnected(peripheral_id=peripheral_id))

    async def _connect(self, peripheral_id: PeripheralId) -> None:
        bleak = _require_bleak()
        target = self._devices.get(peripheral_id, peripheral_id)
        client = bleak.BleakClient(
            target,
            disconnected_callback=self._on_client_disconnected,
            timeout=self._connect_timeout_s,
        )
        try:
            await client.connect()
        except Exception as exc:
            LOGGER.warning("BLE connect failed for %s: %s", peripheral_id, exc)
            self._emit(ConnectFailed(peripheral_id=peripheral_id, error=exc))
            return
        self._clients[peripheral_id] = client
        self._emit(Connected(peripheral_id=peripheral_id))

    async def _disconnect(self, peripheral_id: PeripheralId) -> None:
        client = self._clients.get(peripheral_id)
        if client is None:
            return
        await client.disconnect()

    def _connected_client(self, peripheral_id: PeripheralId) -> Any:
        client = self._clients.get(peripheral_id)
        if client is None or not client.is_connected:
            raise ConnectionError(f"Peripheral {peripheral_id} is not connected")
        return client

    async def _discover_services(
        self,
        peripheral_id: PeripheralId,
        service_ids: frozenset[ServiceId] | None,
    ) -> None:
        try:
            client = self._connected_client(peripheral_id)
            found = tuple(
                service.uuid
                for service in client.services
                if service_ids is None or service.uuid in service_ids
            )
        except Exception as exc:
            self._emit(ServicesDiscovered(peripheral_id=peripheral_id, service_ids=(), error=exc))
            return
        self._emit(ServicesDiscovered(peripheral_id=peripheral_id, service_ids=found))

    async def _discover_characteristics(self, peripheral_id: PeripheralId, service_id: ServiceId) -> None:
        try:
            client = self._connected_client(peripheral_id)
            service = client.services.get_service(service_id)
            if service is None:
                raise LookupError(f"Service {service_id} not found on {peripheral_id}")
            found = tuple(characteristic.uuid for characteristic in service.characteristics)
        except Exception as exc:
            self._emit(
                CharacteristicsDiscovered(
                    peripheral_id=peripheral_id,
                    service_id=service_id,
                    characteristic_ids=(),
                    error=exc,
                )
            )
            return
        self._emit(
            CharacteristicsDiscovered(
                peripheral_id=peripheral_id,
                service_id=service_id,
                characteristic_ids=found,
            )
        )

    async def _set_notify(
        self,
        peripheral_id: PeripheralId,
        characteristic_id: CharacteristicId,
        enabled: bool,
    ) -> None:
        def _notify_handler(characteristic: Any, data: bytearray) -> None:
            self._emit(
                ValueUpdated(
                    peripheral_id=peripheral_id,
                    characteristic_id=characteristic.uuid,
                    payload=bytes(data),
                )
            )

        try:
            client = self._connected_client(peripheral_id)
            if enabled:
                await client.start_notify(characteristic_id, _notify_handler)
            else:
                await client.stop_notify(characteristic_id)
        except Exception as exc:
            self._emit(
                NotifyStateChanged(
                    peripheral_id=peripheral_id,
                    characteristic_id=characteristic_id,
                    is_notifying=False,
                    error=exc,
                )
            )
            return
        self._emit(
            NotifyStateChanged(
                peripheral_id=peripheral_id,
                characteristic_id=characteristic_id,
                is_notifying=enabled,
            )
        )

    async def _write(
        self,
        peripheral_id: PeripheralId,
        service_id: ServiceId,
        characteristic_id: CharacteristicId,
        payload: bytes,
        with_response: bool,
    ) -> None:
        client = self._connected_client(peripheral_id)
        service = client.services.get_service(service_id)
        characteristic = service.get_characteristic(characteristic_id) if service is not None else None
        if characteristic is None:
            LOGGER.debug("Write target %s/%s vanished on %s", service_id, characteristic_id, peripheral_id)
            return
        await client.write_gatt_char(characteristic, payload, response=with_response)

    async def _shutdown(self) -> None:
        await self._stop_scan()
        for peripheral_id, client in list(self._clients.items()):
            try:
                await client.disconnect()
            except Exception as exc:
                LOGGER.warning("Disconnect from %s failed during shutdown: %s", peripheral_id, exc)
        self._clients.clear()
        self._emit(PowerStateChanged(state=AdapterPowerState.POWERED_OFF))


def _log_failure(future: concurrent.futures.Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        LOGGER.warning("BLE adapter request failed: %s", exc)
