"""Vaccine temperature thresholds registry."""

from __future__ import annotations

import logging

from .errors import InvalidThreshold
from .guard import AdminGuard
from .models import MAX_VACCINE_TYPE_LEN, VaccineThresholds, thresholds_valid
from .store import TABLE_THRESHOLDS, StateTransaction

logger = logging.getLogger(__name__)


class ThresholdRegistry:
    def __init__(self, guard: AdminGuard) -> None:
        self.guard = guard

    def set(self, txn: StateTransaction, caller: str, vaccine_type: str, min_temp: int, max_temp: int) -> VaccineThresholds:
        self.guard.require_admin(txn, caller)
        if not vaccine_type or len(vaccine_type) > MAX_VACCINE_TYPE_LEN:
            raise InvalidThreshold(f"vaccine_type must be 1..{MAX_VACCINE_TYPE_LEN} characters")
        if not thresholds_valid(min_temp, max_temp):
            raise InvalidThreshold(f"invalid range [{min_temp}, {max_temp}] for {vaccine_type}")
        entry = VaccineThresholds(vaccine_type=vaccine_type, min_temp=min_temp, max_temp=max_temp)
        txn.put(TABLE_THRESHOLDS, vaccine_type, entry.model_dump(mode="json"))
        logger.info(
            "CV: thresholds set (vaccine_type=%s, min_temp=%s, max_temp=%s, by=%s)",
            vaccine_type,
            min_temp,
            max_temp,
            caller,
        )
        return entry

    def get(self, txn: StateTransaction, vaccine_type: str) -> VaccineThresholds | None:
        row = txn.get(TABLE_THRESHOLDS, vaccine_type)
        return None if row is None else VaccineThresholds(**row)
