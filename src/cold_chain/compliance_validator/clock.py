"""Logical sequence clock persisted alongside validator state."""

from __future__ import annotations

from .store import TABLE_SETTINGS, StateTransaction

_SEQUENCE_KEY = "sequence"


class SequenceClock:
    def __init__(self, initial: int) -> None:
        self.initial = int(initial)

    def current(self, txn: StateTransaction) -> int:
        row = txn.get(TABLE_SETTINGS, _SEQUENCE_KEY)
        return self.initial if row is None else int(row["value"])

    def advance(self, txn: StateTransaction, steps: int = 1) -> int:
        if steps < 1:
            raise ValueError("sequence can only move forward")
        value = self.current(txn) + steps
        txn.put(TABLE_SETTINGS, _SEQUENCE_KEY, {"value": value})
        return value
