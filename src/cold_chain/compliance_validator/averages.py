"""Floor average of a batch's recorded temperatures."""

from __future__ import annotations

from .errors import NoReadings
from .ledger import ReadingLedger
from .store import StateTransaction


class AverageCalculator:
    def __init__(self, ledger: ReadingLedger) -> None:
        self.ledger = ledger

    def average(self, txn: StateTransaction, batch_id: int) -> int:
        count = self.ledger.count(txn, batch_id)
        if count == 0:
            raise NoReadings(f"batch {batch_id} has no readings")
        # Missing entries add nothing; the divisor stays the recorded count.
        total = sum(reading.temperature for reading in self.ledger.iter_readings(txn, batch_id))
        return total // count
