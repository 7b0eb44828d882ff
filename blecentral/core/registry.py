"""Authoritative set of known peripherals."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from blecentral.core.model import ConnectionState, PeripheralId, PeripheralRecord

LOGGER = logging.getLogger(__name__)


class PeripheralRegistry:
    """Insert-if-absent store of peripheral records.

    Records are never removed; a disconnected peripheral keeps its record so
    that a later rediscovery is recognised as an already known device.
    """

    def __init__(self) -> None:
        self._records: dict[PeripheralId, PeripheralRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, peripheral_id: object) -> bool:
        return peripheral_id in self._records

    def __iter__(self) -> Iterator[PeripheralRecord]:
        return iter(list(self._records.values()))

    def upsert(self, peripheral_id: PeripheralId) -> PeripheralRecord:
        record = self._records.get(peripheral_id)
        if record is None:
            record = PeripheralRecord(id=peripheral_id)
            self._records[peripheral_id] = record
        return record

    def find(self, peripheral_id: PeripheralId) -> PeripheralRecord | None:
        return self._records.get(peripheral_id)

    def transition(self, peripheral_id: PeripheralId, new_state: ConnectionState) -> None:
        record = self._records.get(peripheral_id)
        if record is None:
            LOGGER.debug("Ignoring transition to %s for unknown peripheral %s", new_state.value, peripheral_id)
            return
        if record.connection_state is not new_state:
            LOGGER.debug(
                "Peripheral %s: %s -> %s",
                peripheral_id,
                record.connection_state.value,
                new_state.value,
            )
        record.connection_state = new_state
