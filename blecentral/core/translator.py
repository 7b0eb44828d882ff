"""Mapping from radio adapter callbacks to the public event vocabulary."""

from __future__ import annotations

from blecentral.core.model import (
    AdapterCallback,
    Connected,
    DataReceived,
    Disconnected,
    Discovered,
    Event,
    PeripheralConnected,
    PeripheralDisconnected,
    PeripheralDiscovered,
    ValueUpdated,
)


def translate(callback: AdapterCallback, *, announce: bool) -> Event | None:
    """Return the domain event for `callback`, or `None` when it is absorbed.

    `announce` comes from the state machine and is false for callbacks it
    dropped (unknown peripheral, duplicate discovery, reported errors).
    Power state, discovery results, and notification state never produce events.
    """
    if not announce:
        return None
    if isinstance(callback, Discovered):
        return PeripheralDiscovered(peripheral_id=callback.peripheral_id)
    if isinstance(callback, Connected):
        return PeripheralConnected(peripheral_id=callback.peripheral_id)
    if isinstance(callback, Disconnected):
        return PeripheralDisconnected(peripheral_id=callback.peripheral_id)
    if isinstance(callback, ValueUpdated):
        if callback.error is not None or not callback.payload:
            return None
        return DataReceived(
            peripheral_id=callback.peripheral_id,
            characteristic_id=callback.characteristic_id,
            payload=bytes(callback.payload),
        )
    return None
