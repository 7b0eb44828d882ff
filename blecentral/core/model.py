"""Core data models shared by the registry, state machine, controller, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

PeripheralId = str
ServiceId = str
CharacteristicId = str


class ConnectionState(str, Enum):
    DISCOVERED = "discovered"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCOVERING_SERVICES = "discovering_services"
    DISCOVERING_CHARACTERISTICS = "discovering_characteristics"
    SUBSCRIBED = "subscribed"
    DISCONNECTED = "disconnected"


class AdapterPowerState(str, Enum):
    UNKNOWN = "unknown"
    RESETTING = "resetting"
    UNSUPPORTED = "unsupported"
    UNAUTHORIZED = "unauthorized"
    POWERED_OFF = "powered_off"
    POWERED_ON = "powered_on"


@dataclass(frozen=True)
class ServiceFilter:
    """GATT objects the controller cares about.

    An empty service set places no restriction on scanning or service
    discovery. Only listed characteristics are ever subscribed, so an empty
    characteristic set subscribes nothing.
    """

    service_ids: frozenset[ServiceId] = frozenset()
    characteristic_ids: frozenset[CharacteristicId] = frozenset()

    def wants_service(self, service_id: ServiceId) -> bool:
        return not self.service_ids or service_id in self.service_ids

    def wants_characteristic(self, characteristic_id: CharacteristicId) -> bool:
        return characteristic_id in self.characteristic_ids


@dataclass(frozen=True)
class ConnectionPolicy:
    connect_on_discovery: bool
    resubscribe_on_invalidation: bool


AUTO_CONNECT = ConnectionPolicy(connect_on_discovery=True, resubscribe_on_invalidation=True)
MANUAL = ConnectionPolicy(connect_on_discovery=False, resubscribe_on_invalidation=False)


@dataclass
class PeripheralRecord:
    id: PeripheralId
    connection_state: ConnectionState = ConnectionState.DISCOVERED
    discovered_services: set[ServiceId] = field(default_factory=set)
    characteristics: dict[ServiceId, set[CharacteristicId]] = field(default_factory=dict)
    subscribed_characteristics: set[CharacteristicId] = field(default_factory=set)

    def forget_gatt(self) -> None:
        self.discovered_services.clear()
        self.characteristics.clear()
        self.subscribed_characteristics.clear()

    def snapshot(self) -> PeripheralSnapshot:
        return PeripheralSnapshot(
            id=self.id,
            connection_state=self.connection_state,
            discovered_services=frozenset(self.discovered_services),
            characteristics={
                service_id: frozenset(chars) for service_id, chars in self.characteristics.items()
            },
            subscribed_characteristics=frozenset(self.subscribed_characteristics),
        )


@dataclass(frozen=True)
class PeripheralSnapshot:
    """Read-only copy of a registry record handed to observers."""

    id: PeripheralId
    connection_state: ConnectionState
    discovered_services: frozenset[ServiceId]
    characteristics: dict[ServiceId, frozenset[CharacteristicId]]
    subscribed_characteristics: frozenset[CharacteristicId]

    def has_characteristic(self, service_id: ServiceId, characteristic_id: CharacteristicId) -> bool:
        return (
            service_id in self.discovered_services
            and characteristic_id in self.characteristics.get(service_id, frozenset())
        )


# Intents (application -> controller)


@dataclass(frozen=True)
class StartScanning:
    pass


@dataclass(frozen=True)
class StopScanning:
    pass


@dataclass(frozen=True)
class Send:
    peripheral_id: PeripheralId
    service_id: ServiceId
    characteristic_id: CharacteristicId
    payload: bytes


@dataclass(frozen=True)
class Connect:
    peripheral_id: PeripheralId


@dataclass(frozen=True)
class Disconnect:
    peripheral_id: PeripheralId


@dataclass(frozen=True)
class SetNotify:
    peripheral_id: PeripheralId
    characteristic_id: CharacteristicId
    enabled: bool


Intent = Union[StartScanning, StopScanning, Send, Connect, Disconnect, SetNotify]


# Events (controller -> application)


@dataclass(frozen=True)
class PeripheralDiscovered:
    peripheral_id: PeripheralId


@dataclass(frozen=True)
class PeripheralConnected:
    peripheral_id: PeripheralId


@dataclass(frozen=True)
class PeripheralDisconnected:
    peripheral_id: PeripheralId


@dataclass(frozen=True)
class DataReceived:
    peripheral_id: PeripheralId
    characteristic_id: CharacteristicId
    payload: bytes


@dataclass(frozen=True)
class ScanningChanged:
    active: bool


Event = Union[
    PeripheralDiscovered,
    PeripheralConnected,
    PeripheralDisconnected,
    DataReceived,
    ScanningChanged,
]


# Radio adapter callbacks (adapter -> controller)


@dataclass(frozen=True)
class PowerStateChanged:
    state: AdapterPowerState


@dataclass(frozen=True)
class Discovered:
    peripheral_id: PeripheralId
    is_connected: bool = False


@dataclass(frozen=True)
class Connected:
    peripheral_id: PeripheralId


@dataclass(frozen=True)
class ConnectFailed:
    peripheral_id: PeripheralId
    error: Exception | None = None


@dataclass(frozen=True)
class Disconnected:
    peripheral_id: PeripheralId
    error: Exception | None = None


@dataclass(frozen=True)
class ServicesDiscovered:
    peripheral_id: PeripheralId
    service_ids: tuple[ServiceId, ...]
    error: Exception | None = None


@dataclass(frozen=True)
class ServicesInvalidated:
    peripheral_id: PeripheralId
    service_ids: tuple[ServiceId, ...]


@dataclass(frozen=True)
class CharacteristicsDiscovered:
    peripheral_id: PeripheralId
    service_id: ServiceId
    characteristic_ids: tuple[CharacteristicId, ...]
    error: Exception | None = None


@dataclass(frozen=True)
class NotifyStateChanged:
    peripheral_id: PeripheralId
    characteristic_id: CharacteristicId
    is_notifying: bool
    error: Exception | None = None


@dataclass(frozen=True)
class ValueUpdated:
    peripheral_id: PeripheralId
    characteristic_id: CharacteristicId
    payload: bytes | None
    error: Exception | None = None


AdapterCallback = Union[
    PowerStateChanged,
    Discovered,
    Connected,
    ConnectFailed,
    Disconnected,
    ServicesDiscovered,
    ServicesInvalidated,
    CharacteristicsDiscovered,
    NotifyStateChanged,
    ValueUpdated,
]


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    service_filter: ServiceFilter
    policy: ConnectionPolicy = AUTO_CONNECT
