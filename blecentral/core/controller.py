"""Central-role controller: intents in, events and adapter state out."""

from __future__ import annotations

import logging
import threading

from blecentral.core.channels import CurrentValueChannel, EventChannel, Subscription
from blecentral.core.intents import IntentProcessor
from blecentral.core.model import (
    AUTO_CONNECT,
    AdapterCallback,
    AdapterPowerState,
    ConnectionPolicy,
    Event,
    Intent,
    PeripheralId,
    PeripheralSnapshot,
    PowerStateChanged,
    ServiceFilter,
)
from blecentral.core.registry import PeripheralRegistry
from blecentral.core.state_machine import AdapterCall, ConnectionStateMachine
from blecentral.core.translator import translate
from blecentral.transports.base import RadioAdapter

LOGGER = logging.getLogger(__name__)


class CentralController:
    """Owns the peripheral registry, adapter power state, and scanning state.

    Adapter callbacks and intents may arrive on different threads. The state
    lock guards owned state for the length of each transition and is released
    before any adapter request is issued or any event is published, so an
    adapter that calls back re-entrantly cannot deadlock the controller.

    A second, re-entrant dispatch lock is held from the transition until its
    requests are issued and its outputs published. Work from different threads
    is therefore applied and published in the same order, while a subscriber or
    adapter calling back on the same thread still nests.
    """

    def __init__(
        self,
        adapter: RadioAdapter,
        service_filter: ServiceFilter,
        *,
        policy: ConnectionPolicy = AUTO_CONNECT,
    ) -> None:
        self._adapter = adapter
        self._service_filter = service_filter
        self._lock = threading.Lock()
        self._dispatch_lock = threading.RLock()
        self._registry = PeripheralRegistry()
        self._power_state = AdapterPowerState.UNKNOWN
        self._scanning = False
        self._state_machine = ConnectionStateMachine(self._registry, adapter, service_filter, policy)
        self._intents = IntentProcessor(self._registry, adapter, service_filter)

        self.input: EventChannel[Intent] = EventChannel()
        self.events: EventChannel[Event] = EventChannel()
        self.state: CurrentValueChannel[AdapterPowerState] = CurrentValueChannel(self._power_state)
        self.scanning: CurrentValueChannel[bool] = CurrentValueChannel(self._scanning)

        self._input_subscription: Subscription | None = self.input.subscribe(self.process)
        adapter.attach(self.handle_callback)
        LOGGER.debug(
            "Controller created (services=%s, characteristics=%s)",
            sorted(service_filter.service_ids),
            sorted(service_filter.characteristic_ids),
        )

    @property
    def service_filter(self) -> ServiceFilter:
        return self._service_filter

    @property
    def policy(self) -> ConnectionPolicy:
        return self._state_machine.policy

    @property
    def power_state(self) -> AdapterPowerState:
        with self._lock:
            return self._power_state

    @property
    def is_scanning(self) -> bool:
        with self._lock:
            return self._scanning

    def peripherals(self) -> list[PeripheralSnapshot]:
        with self._lock:
            return [record.snapshot() for record in self._registry]

    def peripheral(self, peripheral_id: PeripheralId) -> PeripheralSnapshot | None:
        with self._lock:
            record = self._registry.find(peripheral_id)
            return record.snapshot() if record is not None else None

    def send(self, intent: Intent) -> None:
        """Publish `intent` on the input channel."""
        self.input.publish(intent)

    def process(self, intent: Intent) -> None:
        with self._dispatch_lock:
            with self._lock:
                dispatch = self._intents.process(intent)
                if dispatch.scanning is not None:
                    self._scanning = dispatch.scanning

            _issue(dispatch.calls)
            if dispatch.scanning is not None:
                self.scanning.publish(dispatch.scanning)
            for event in dispatch.events:
                self.events.publish(event)

    def handle_callback(self, callback: AdapterCallback) -> None:
        with self._dispatch_lock:
            if isinstance(callback, PowerStateChanged):
                with self._lock:
                    changed = self._power_state is not callback.state
                    self._power_state = callback.state
                if changed:
                    LOGGER.info("Adapter power state: %s", callback.state.value)
                    self.state.publish(callback.state)
                return

            with self._lock:
                transition = self._state_machine.handle(callback)
                event = translate(callback, announce=transition.announce)

            if event is not None:
                self.events.publish(event)
            _issue(transition.calls)

    def close(self) -> None:
        self._adapter.attach(None)
        if self._input_subscription is not None:
            self._input_subscription.cancel()
            self._input_subscription = None
        self.events.clear()
        self.state.clear()
        self.scanning.clear()


def _issue(calls: tuple[AdapterCall, ...]) -> None:
    for call in calls:
        call()
