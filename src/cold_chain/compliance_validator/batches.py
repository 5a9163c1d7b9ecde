"""Current compliance record per batch."""

from __future__ import annotations

import logging

from .errors import BatchAlreadyInitialized, BatchNotFound, InvalidVaccineType
from .ledger import ReadingLedger
from .models import BatchComplianceRecord
from .store import TABLE_COMPLIANCE, StateTransaction
from .thresholds import ThresholdRegistry

logger = logging.getLogger(__name__)


class BatchComplianceStore:
    def __init__(self, registry: ThresholdRegistry, ledger: ReadingLedger, *, allow_reinitialize: bool = False) -> None:
        self.registry = registry
        self.ledger = ledger
        self.allow_reinitialize = allow_reinitialize

    def initialize(self, txn: StateTransaction, batch_id: int, vaccine_type: str, now: int) -> BatchComplianceRecord:
        thresholds = self.registry.get(txn, vaccine_type)
        if thresholds is None:
            raise InvalidVaccineType(f"no thresholds registered for {vaccine_type!r}")
        if self.get(txn, batch_id) is not None:
            if not self.allow_reinitialize:
                raise BatchAlreadyInitialized(f"batch {batch_id} is already initialized")
            purged = self.ledger.reset(txn, batch_id)
            logger.warning("CV: batch re-initialized (batch_id=%s, purged_readings=%s)", batch_id, purged)
        else:
            self.ledger.reset(txn, batch_id)
        record = BatchComplianceRecord(
            batch_id=batch_id,
            is_compliant=True,
            last_checked=now,
            flagged_reason=None,
            excursion_count=0,
            last_excursion_at=None,
            vaccine_type=vaccine_type,
            min_temp=thresholds.min_temp,
            max_temp=thresholds.max_temp,
        )
        self.put(txn, record)
        return record

    def get(self, txn: StateTransaction, batch_id: int) -> BatchComplianceRecord | None:
        row = txn.get(TABLE_COMPLIANCE, str(batch_id))
        return None if row is None else BatchComplianceRecord(**row)

    def require(self, txn: StateTransaction, batch_id: int) -> BatchComplianceRecord:
        record = self.get(txn, batch_id)
        if record is None:
            raise BatchNotFound(f"batch {batch_id} not found")
        return record

    def put(self, txn: StateTransaction, record: BatchComplianceRecord) -> None:
        txn.put(TABLE_COMPLIANCE, str(record.batch_id), record.model_dump(mode="json"))
