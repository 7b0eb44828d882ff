"""Per-peripheral connection lifecycle driven by radio adapter callbacks.

The state machine only mutates the registry and decides which adapter requests
follow from a callback. It never calls the adapter itself: the requests are
returned as deferred calls so the controller can issue them after releasing
its lock, which keeps re-entrant adapter callbacks from deadlocking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable

from blecentral.core.model import (
    AUTO_CONNECT,
    AdapterCallback,
    CharacteristicsDiscovered,
    Connected,
    ConnectFailed,
    ConnectionPolicy,
    ConnectionState,
    Disconnected,
    Discovered,
    NotifyStateChanged,
    PowerStateChanged,
    ServiceFilter,
    ServicesDiscovered,
    ServicesInvalidated,
    ValueUpdated,
)
from blecentral.core.registry import PeripheralRegistry
from blecentral.transports.base import RadioAdapter

LOGGER = logging.getLogger(__name__)

AdapterCall = Callable[[], None]


@dataclass(frozen=True)
class Transition:
    """Result of applying one callback.

    `announce` tells the event translator whether the callback is worth a
    domain event; `calls` are the adapter requests to issue, in order.
    """

    announce: bool
    calls: tuple[AdapterCall, ...] = ()


_DROPPED = Transition(announce=False)

_LINK_UP_STATES = frozenset(
    {
        ConnectionState.CONNECTED,
        ConnectionState.DISCOVERING_SERVICES,
        ConnectionState.DISCOVERING_CHARACTERISTICS,
        ConnectionState.SUBSCRIBED,
    }
)


class ConnectionStateMachine:
    def __init__(
        self,
        registry: PeripheralRegistry,
        adapter: RadioAdapter,
        service_filter: ServiceFilter,
        policy: ConnectionPolicy = AUTO_CONNECT,
    ) -> None:
        self._registry = registry
        self._adapter = adapter
        self._filter = service_filter
        self._policy = policy
        self._handlers: dict[type, Callable[..., Transition]] = {
            PowerStateChanged: self._on_power_state_changed,
            Discovered: self._on_discovered,
            Connected: self._on_connected,
            ConnectFailed: self._on_connect_failed,
            Disconnected: self._on_disconnected,
            ServicesDiscovered: self._on_services_discovered,
            ServicesInvalidated: self._on_services_invalidated,
            CharacteristicsDiscovered: self._on_characteristics_discovered,
            NotifyStateChanged: self._on_notify_state_changed,
            ValueUpdated: self._on_value_updated,
        }

    @property
    def policy(self) -> ConnectionPolicy:
        return self._policy

    def handle(self, callback: AdapterCallback) -> Transition:
        handler = self._handlers.get(type(callback))
        if handler is None:
            raise TypeError(f"Unsupported adapter callback: {callback!r}")
        return handler(callback)

    def _discover_services_call(self, peripheral_id: str) -> AdapterCall:
        return partial(self._adapter.discover_services, peripheral_id, self._filter.service_ids or None)

    def _on_power_state_changed(self, callback: PowerStateChanged) -> Transition:
        return _DROPPED

    def _on_discovered(self, callback: Discovered) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)

        if record is None:
            self._registry.upsert(peripheral_id)
            if not self._policy.connect_on_discovery:
                return Transition(announce=True)
            self._registry.transition(peripheral_id, ConnectionState.CONNECTING)
            return Transition(announce=True, calls=(partial(self._adapter.connect, peripheral_id),))

        if callback.is_connected:
            return _DROPPED

        # The adapter's physical link flag wins over the cached state: a record
        # that still claims to be connected after a silent link loss reconnects.
        if record.connection_state is ConnectionState.CONNECTING:
            return _DROPPED
        if record.connection_state is not ConnectionState.DISCOVERED:
            LOGGER.debug(
                "Peripheral %s rediscovered while %s; link is down",
                peripheral_id,
                record.connection_state.value,
            )
            record.forget_gatt()
            self._registry.transition(peripheral_id, ConnectionState.DISCOVERED)
        if not self._policy.connect_on_discovery:
            return Transition(announce=True)
        self._registry.transition(peripheral_id, ConnectionState.CONNECTING)
        return Transition(announce=True, calls=(partial(self._adapter.connect, peripheral_id),))

    def _on_connected(self, callback: Connected) -> Transition:
        peripheral_id = callback.peripheral_id
        if self._registry.find(peripheral_id) is None:
            LOGGER.debug("Dropping connect callback for unknown peripheral %s", peripheral_id)
            return _DROPPED
        self._registry.transition(peripheral_id, ConnectionState.CONNECTED)
        self._registry.transition(peripheral_id, ConnectionState.DISCOVERING_SERVICES)
        return Transition(announce=True, calls=(self._discover_services_call(peripheral_id),))

    def _on_connect_failed(self, callback: ConnectFailed) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)
        if record is None:
            return _DROPPED
        LOGGER.warning("Connect to %s failed: %s", peripheral_id, callback.error)
        # Back to Discovered so the next advertisement retries the connect.
        if record.connection_state is ConnectionState.CONNECTING:
            self._registry.transition(peripheral_id, ConnectionState.DISCOVERED)
        return _DROPPED

    def _on_disconnected(self, callback: Disconnected) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)
        if record is None:
            LOGGER.debug("Dropping disconnect callback for unknown peripheral %s", peripheral_id)
            return _DROPPED
        if callback.error is not None:
            LOGGER.warning("Peripheral %s disconnected with error: %s", peripheral_id, callback.error)
        self._registry.transition(peripheral_id, ConnectionState.DISCONNECTED)
        record.forget_gatt()
        self._registry.transition(peripheral_id, ConnectionState.DISCOVERED)
        return Transition(announce=True)

    def _on_services_discovered(self, callback: ServicesDiscovered) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)
        if record is None:
            LOGGER.debug("Dropping services for unknown peripheral %s", peripheral_id)
            return _DROPPED
        if callback.error is not None:
            LOGGER.warning("Service discovery failed for %s: %s", peripheral_id, callback.error)
            return _DROPPED

        service_ids = [s for s in callback.service_ids if self._filter.wants_service(s)]
        record.discovered_services.update(service_ids)
        if record.connection_state is not ConnectionState.SUBSCRIBED:
            self._registry.transition(peripheral_id, ConnectionState.DISCOVERING_CHARACTERISTICS)
        return Transition(
            announce=False,
            calls=tuple(
                partial(self._adapter.discover_characteristics, peripheral_id, service_id)
                for service_id in service_ids
            ),
        )

    def _on_services_invalidated(self, callback: ServicesInvalidated) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)
        if record is None:
            return _DROPPED

        invalidated = [s for s in callback.service_ids if self._filter.wants_service(s)]
        if not invalidated:
            return _DROPPED
        for service_id in invalidated:
            record.discovered_services.discard(service_id)
            stale = record.characteristics.pop(service_id, set())
            record.subscribed_characteristics.difference_update(stale)

        if not self._policy.resubscribe_on_invalidation:
            return _DROPPED
        if record.connection_state not in _LINK_UP_STATES:
            LOGGER.debug("Not resynchronising %s while %s", peripheral_id, record.connection_state.value)
            return _DROPPED
        LOGGER.debug("Resynchronising services %s on %s", invalidated, peripheral_id)
        return Transition(announce=False, calls=(self._discover_services_call(peripheral_id),))

    def _on_characteristics_discovered(self, callback: CharacteristicsDiscovered) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)
        if record is None:
            return _DROPPED
        if callback.error is not None:
            LOGGER.warning(
                "Characteristic discovery failed for %s/%s: %s",
                peripheral_id,
                callback.service_id,
                callback.error,
            )
            return _DROPPED

        record.discovered_services.add(callback.service_id)
        record.characteristics[callback.service_id] = set(callback.characteristic_ids)
        wanted = [c for c in callback.characteristic_ids if self._filter.wants_characteristic(c)]
        return Transition(
            announce=False,
            calls=tuple(partial(self._adapter.set_notify, peripheral_id, c, True) for c in wanted),
        )

    def _on_notify_state_changed(self, callback: NotifyStateChanged) -> Transition:
        peripheral_id = callback.peripheral_id
        record = self._registry.find(peripheral_id)
        if record is None:
            return _DROPPED
        if callback.error is not None:
            LOGGER.warning(
                "Notification change failed for %s/%s: %s",
                peripheral_id,
                callback.characteristic_id,
                callback.error,
            )
            return _DROPPED

        if callback.is_notifying:
            record.subscribed_characteristics.add(callback.characteristic_id)
            self._registry.transition(peripheral_id, ConnectionState.SUBSCRIBED)
        else:
            record.subscribed_characteristics.discard(callback.characteristic_id)
        return _DROPPED

    def _on_value_updated(self, callback: ValueUpdated) -> Transition:
        if self._registry.find(callback.peripheral_id) is None:
            LOGGER.debug("Dropping value for unknown peripheral %s", callback.peripheral_id)
            return _DROPPED
        if callback.error is not None:
            LOGGER.warning(
                "Value update failed for %s/%s: %s",
                callback.peripheral_id,
                callback.characteristic_id,
                callback.error,
            )
            return _DROPPED
        return Transition(announce=True)
