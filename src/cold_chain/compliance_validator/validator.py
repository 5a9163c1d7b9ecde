"""Compliance validator orchestration: every public operation is one atomic transaction."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Any, Iterator

from .averages import AverageCalculator
from .batches import BatchComplianceStore
from .bus import BreachBus, build_breach_bus
from .clock import SequenceClock
from .config import ValidatorProfile
from .engine import ExcursionEngine
from .errors import InvalidTemperature, MetadataTooLong
from .guard import AdminGuard
from .ledger import ReadingLedger
from .models import BatchComplianceRecord, ComplianceBreach, SubmitReceipt, TemperatureReading, VaccineThresholds
from .store import StateStore, StateTransaction, build_state_store
from .thresholds import ThresholdRegistry


class ComplianceValidator:
    def __init__(
        self,
        profile: ValidatorProfile,
        *,
        store: StateStore | None = None,
        breach_bus: BreachBus | None = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.profile = profile
        self.store = store if store is not None else build_state_store(profile.state_store_dsn)
        self.breach_bus = breach_bus or build_breach_bus(
            profile.breach_bus_kind,
            root=profile.breach_bus_root,
            topic=profile.breach_topic,
        )
        self.guard = AdminGuard(profile.deployer)
        self.clock = SequenceClock(profile.initial_sequence)
        self.ledger = ReadingLedger()
        self.registry = ThresholdRegistry(self.guard)
        self.batches = BatchComplianceStore(
            self.registry,
            self.ledger,
            allow_reinitialize=profile.allow_reinitialize,
        )
        self.engine = ExcursionEngine(profile.excursion_policy())
        self.averages = AverageCalculator(self.ledger)
        self._lock = threading.RLock()
        with self._transaction() as txn:
            self.guard.bootstrap(txn)

    # Administration

    def set_admin(self, caller: str, new_admin: str) -> None:
        with self._transaction() as txn:
            self.guard.set_admin(txn, caller, new_admin)

    def pause(self, caller: str) -> None:
        with self._transaction() as txn:
            self.guard.set_paused(txn, caller, True)

    def unpause(self, caller: str) -> None:
        with self._transaction() as txn:
            self.guard.set_paused(txn, caller, False)

    def set_vaccine_thresholds(self, caller: str, vaccine_type: str, min_temp: int, max_temp: int) -> VaccineThresholds:
        with self._transaction() as txn:
            return self.registry.set(txn, caller, vaccine_type, min_temp, max_temp)

    # Batch lifecycle

    def initialize_batch(self, batch_id: int, vaccine_type: str, caller: str | None = None) -> BatchComplianceRecord:
        with self._transaction() as txn:
            self.guard.require_active(txn)
            record = self.batches.initialize(txn, batch_id, vaccine_type, now=self.clock.current(txn))
        self.logger.info("CV: batch initialized (batch_id=%s, vaccine_type=%s, by=%s)", batch_id, vaccine_type, caller)
        return record

    def submit_reading(self, submitter: str, batch_id: int, temperature: int, metadata: str = "") -> SubmitReceipt:
        """Record a reading and advance the batch's compliance state.

        Raises InvalidTemperature when the batch ends up non-compliant. The
        reading and the updated record are committed before it is raised.
        """
        with self._transaction() as txn:
            self.guard.require_active(txn)
            record = self.batches.require(txn, batch_id)
            if len(metadata) > self.profile.max_metadata_len:
                raise MetadataTooLong(f"metadata length {len(metadata)} exceeds {self.profile.max_metadata_len}")
            now = self.clock.current(txn)
            reading = self.ledger.append(
                txn,
                batch_id=batch_id,
                temperature=temperature,
                timestamp=now,
                submitter=submitter,
                metadata=metadata,
            )
            outcome = self.engine.step(record, temperature, now)
            self.batches.put(txn, outcome.record)
            self.clock.advance(txn)

        updated = outcome.record
        if outcome.new_excursion:
            self.logger.warning(
                "CV: excursion opened (batch_id=%s, reading_id=%s, temperature=%s, range=[%s, %s], excursion_count=%s)",
                batch_id,
                reading.reading_id,
                temperature,
                updated.min_temp,
                updated.max_temp,
                updated.excursion_count,
            )
        else:
            self.logger.debug(
                "CV: reading recorded (batch_id=%s, reading_id=%s, temperature=%s, state=%s)",
                batch_id,
                reading.reading_id,
                temperature,
                updated.state.value,
            )
        if not updated.is_compliant:
            self._publish_breach(updated, reading)
            raise InvalidTemperature(
                f"batch {batch_id} is non-compliant: {updated.flagged_reason}",
                reading_id=reading.reading_id,
                record=updated,
            )
        return SubmitReceipt(batch_id=batch_id, reading_id=reading.reading_id, sequence=now, record=updated)

    # Queries

    def get_batch_compliance(self, batch_id: int) -> BatchComplianceRecord | None:
        with self._transaction() as txn:
            return self.batches.get(txn, batch_id)

    def get_temperature_history(self, batch_id: int, reading_id: int) -> TemperatureReading | None:
        with self._transaction() as txn:
            return self.ledger.get(txn, batch_id, reading_id)

    def list_temperature_history(self, batch_id: int) -> list[TemperatureReading]:
        with self._transaction() as txn:
            return list(self.ledger.iter_readings(txn, batch_id))

    def get_reading_count(self, batch_id: int) -> int:
        with self._transaction() as txn:
            return self.ledger.count(txn, batch_id)

    def get_vaccine_thresholds(self, vaccine_type: str) -> VaccineThresholds | None:
        with self._transaction() as txn:
            return self.registry.get(txn, vaccine_type)

    def is_paused(self) -> bool:
        with self._transaction() as txn:
            return self.guard.is_paused(txn)

    def get_admin(self) -> str:
        with self._transaction() as txn:
            return self.guard.get_admin(txn)

    def calculate_average_temperature(self, batch_id: int) -> int:
        with self._transaction() as txn:
            return self.averages.average(txn, batch_id)

    # Logical clock

    def current_sequence(self) -> int:
        with self._transaction() as txn:
            return self.clock.current(txn)

    def advance_sequence(self, steps: int = 1) -> int:
        with self._transaction() as txn:
            return self.clock.advance(txn, steps)

    def status(self) -> dict[str, Any]:
        with self._transaction() as txn:
            return {
                "profile_id": self.profile.profile_id,
                "admin": self.guard.get_admin(txn),
                "paused": self.guard.is_paused(txn),
                "sequence": self.clock.current(txn),
            }

    def _publish_breach(self, record: BatchComplianceRecord, reading: TemperatureReading) -> None:
        breach = ComplianceBreach(
            batch_id=record.batch_id,
            reason=record.flagged_reason or "",
            excursion_count=record.excursion_count,
            sequence=reading.timestamp,
            reading_id=reading.reading_id,
        )
        self.logger.warning(
            "CV: compliance breach (batch_id=%s, reason=%s, excursion_count=%s, reading_id=%s)",
            breach.batch_id,
            breach.reason,
            breach.excursion_count,
            breach.reading_id,
            extra={"compliance_event": True},
        )
        try:
            self.breach_bus.publish(breach)
        except Exception:
            # State is already committed; the breach stays visible through the record.
            self.logger.exception("CV: breach publish failed (batch_id=%s)", breach.batch_id)

    @contextmanager
    def _transaction(self) -> Iterator[StateTransaction]:
        with self._lock:
            with self.store.transaction() as txn:
                yield txn
