"""Append-only per-batch temperature reading ledger."""

from __future__ import annotations

from typing import Iterator

from .models import TemperatureReading
from .store import TABLE_COUNTERS, TABLE_READINGS, StateTransaction, reading_key


class ReadingLedger:
    def count(self, txn: StateTransaction, batch_id: int) -> int:
        row = txn.get(TABLE_COUNTERS, str(batch_id))
        return 0 if row is None else int(row["count"])

    def append(
        self,
        txn: StateTransaction,
        *,
        batch_id: int,
        temperature: int,
        timestamp: int,
        submitter: str,
        metadata: str = "",
    ) -> TemperatureReading:
        reading_id = self.count(txn, batch_id) + 1
        reading = TemperatureReading(
            batch_id=batch_id,
            reading_id=reading_id,
            temperature=temperature,
            timestamp=timestamp,
            submitter=submitter,
            metadata=metadata,
        )
        txn.put(TABLE_READINGS, reading_key(batch_id, reading_id), reading.model_dump(mode="json"))
        txn.put(TABLE_COUNTERS, str(batch_id), {"count": reading_id})
        return reading

    def get(self, txn: StateTransaction, batch_id: int, reading_id: int) -> TemperatureReading | None:
        row = txn.get(TABLE_READINGS, reading_key(batch_id, reading_id))
        return None if row is None else TemperatureReading(**row)

    def iter_readings(self, txn: StateTransaction, batch_id: int) -> Iterator[TemperatureReading]:
        """Yield the readings 1..count that are present; gaps are skipped."""
        for reading_id in range(1, self.count(txn, batch_id) + 1):
            reading = self.get(txn, batch_id, reading_id)
            if reading is not None:
                yield reading

    def reset(self, txn: StateTransaction, batch_id: int) -> int:
        count = self.count(txn, batch_id)
        for reading_id in range(1, count + 1):
            txn.delete(TABLE_READINGS, reading_key(batch_id, reading_id))
        txn.put(TABLE_COUNTERS, str(batch_id), {"count": 0})
        return count
