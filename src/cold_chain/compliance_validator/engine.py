"""Excursion state machine for batch compliance records.

A batch moves between three states:

* COMPLIANT: no excursion window open.
* COMPLIANT_EXCURSION: an out-of-range episode is ongoing and still tolerated.
* NON_COMPLIANT: the excursion budget is spent; terminal.

Out-of-range readings arriving within ``excursion_duration`` sequence units of
the excursion that opened the window belong to that same episode and are not
counted again. An in-range reading closes the window.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import EXCURSION_LIMIT_REASON, BatchComplianceRecord, ExcursionPolicy


@dataclass(frozen=True)
class StepOutcome:
    record: BatchComplianceRecord
    new_excursion: bool = False
    flagged: bool = False


class ExcursionEngine:
    def __init__(self, policy: ExcursionPolicy | None = None) -> None:
        self.policy = policy or ExcursionPolicy()

    def step(self, record: BatchComplianceRecord, temperature: int, now: int) -> StepOutcome:
        """Apply one reading to ``record`` and return the updated copy."""
        updates: dict[str, object] = {"last_checked": now}
        if not record.is_compliant:
            return StepOutcome(record=record.model_copy(update=updates))

        if record.in_range(temperature):
            if record.last_excursion_at is not None:
                updates["last_excursion_at"] = None
            return StepOutcome(record=record.model_copy(update=updates))

        if self._window_open(record, now):
            return StepOutcome(record=record.model_copy(update=updates))

        count = record.excursion_count + 1
        updates["excursion_count"] = count
        updates["last_excursion_at"] = now
        flagged = count >= self.policy.max_excursions
        if flagged:
            updates["is_compliant"] = False
            updates["flagged_reason"] = EXCURSION_LIMIT_REASON
        return StepOutcome(record=record.model_copy(update=updates), new_excursion=True, flagged=flagged)

    def _window_open(self, record: BatchComplianceRecord, now: int) -> bool:
        if record.last_excursion_at is None:
            return False
        return now - record.last_excursion_at < self.policy.excursion_duration
