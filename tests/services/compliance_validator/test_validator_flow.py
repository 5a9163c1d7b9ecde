from __future__ import annotations

from pathlib import Path

import pytest

from cold_chain.compliance_validator.bus import MemoryBreachBus
from cold_chain.compliance_validator.config import ValidatorProfile
from cold_chain.compliance_validator.errors import (
    ERRORS_BY_CODE,
    BatchAlreadyInitialized,
    BatchNotFound,
    InvalidTemperature,
    InvalidThreshold,
    InvalidVaccineType,
    MetadataTooLong,
    NoReadings,
    Paused,
    Unauthorized,
)
from cold_chain.compliance_validator.models import EXCURSION_LIMIT_REASON
from cold_chain.compliance_validator.validator import ComplianceValidator

DEPLOYER = "deployer"
ORACLE = "oracle"
USER = "user1"


def _build_profile(**overrides) -> ValidatorProfile:
    payload = {"deployer": DEPLOYER}
    payload.update(overrides)
    return ValidatorProfile(**payload)


def _build_validator(bus: MemoryBreachBus | None = None, **overrides) -> ComplianceValidator:
    return ComplianceValidator(_build_profile(**overrides), breach_bus=bus or MemoryBreachBus())


def _mrna_batch(validator: ComplianceValidator, batch_id: int = 1) -> None:
    validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 2, 8)
    validator.initialize_batch(batch_id, "mRNA")


def test_admin_sets_and_reads_thresholds() -> None:
    validator = _build_validator()
    validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 2, 8)
    entry = validator.get_vaccine_thresholds("mRNA")
    assert entry is not None
    assert (entry.min_temp, entry.max_temp) == (2, 8)
    assert validator.get_vaccine_thresholds("Unknown") is None


def test_non_admin_cannot_set_thresholds() -> None:
    validator = _build_validator()
    with pytest.raises(Unauthorized) as excinfo:
        validator.set_vaccine_thresholds(USER, "mRNA", 2, 8)
    assert excinfo.value.code == 102
    assert validator.get_vaccine_thresholds("mRNA") is None


def test_inverted_thresholds_are_rejected() -> None:
    validator = _build_validator()
    with pytest.raises(InvalidThreshold):
        validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 8, 2)
    with pytest.raises(InvalidThreshold):
        validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 5, 5)
    with pytest.raises(InvalidThreshold):
        validator.set_vaccine_thresholds(DEPLOYER, "hot", 101, 120)
    with pytest.raises(InvalidThreshold):
        validator.set_vaccine_thresholds(DEPLOYER, "cold", -90, -60)
    with pytest.raises(InvalidThreshold):
        validator.set_vaccine_thresholds(DEPLOYER, "x" * 33, 2, 8)
    validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 2, 8)
    validator.set_vaccine_thresholds(DEPLOYER, "edge", 100, 101)
    validator.set_vaccine_thresholds(DEPLOYER, "frozen", -80, -50)


def test_thresholds_overwrite_by_key() -> None:
    validator = _build_validator()
    validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 2, 8)
    validator.set_vaccine_thresholds(DEPLOYER, "mRNA", -25, -15)
    entry = validator.get_vaccine_thresholds("mRNA")
    assert (entry.min_temp, entry.max_temp) == (-25, -15)


def test_initialize_batch_seeds_compliant_record() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    record = validator.get_batch_compliance(1)
    assert record is not None
    assert record.is_compliant is True
    assert record.excursion_count == 0
    assert record.last_excursion_at is None
    assert record.flagged_reason is None
    assert (record.vaccine_type, record.min_temp, record.max_temp) == ("mRNA", 2, 8)
    assert record.last_checked == 1000
    assert validator.get_reading_count(1) == 0


def test_initialize_batch_copies_thresholds_at_creation() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    validator.set_vaccine_thresholds(DEPLOYER, "mRNA", 0, 20)
    record = validator.get_batch_compliance(1)
    assert (record.min_temp, record.max_temp) == (2, 8)


def test_initialize_batch_rejects_unknown_vaccine_type() -> None:
    validator = _build_validator()
    with pytest.raises(InvalidVaccineType) as excinfo:
        validator.initialize_batch(1, "Unknown")
    assert excinfo.value.code == 106
    assert validator.get_batch_compliance(1) is None


def test_reinitialize_is_rejected_by_default() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    validator.submit_reading(ORACLE, 1, 9, "")
    with pytest.raises(BatchAlreadyInitialized):
        validator.initialize_batch(1, "mRNA")
    assert validator.get_batch_compliance(1).excursion_count == 1
    assert validator.get_reading_count(1) == 1


def test_reinitialize_overwrites_when_allowed() -> None:
    validator = _build_validator(allow_reinitialize=True)
    _mrna_batch(validator)
    validator.submit_reading(ORACLE, 1, 9, "")
    validator.submit_reading(ORACLE, 1, 5, "")
    validator.initialize_batch(1, "mRNA")
    record = validator.get_batch_compliance(1)
    assert record.excursion_count == 0
    assert validator.get_reading_count(1) == 0
    assert validator.get_temperature_history(1, 1) is None
    receipt = validator.submit_reading(ORACLE, 1, 4, "")
    assert receipt.reading_id == 1


def test_in_range_reading_succeeds_and_is_recorded() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    receipt = validator.submit_reading(ORACLE, 1, 5, "Normal reading")
    assert receipt.reading_id == 1
    assert receipt.record.is_compliant is True
    assert validator.get_reading_count(1) == 1
    reading = validator.get_temperature_history(1, 1)
    assert reading.temperature == 5
    assert reading.submitter == ORACLE
    assert reading.metadata == "Normal reading"
    assert reading.timestamp == receipt.sequence


def test_in_range_readings_never_change_excursions() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    for temperature in (2, 3, 5, 8, 7, 2, 6):
        validator.submit_reading(ORACLE, 1, temperature, "")
    record = validator.get_batch_compliance(1)
    assert record.is_compliant is True
    assert record.excursion_count == 0


def test_single_excursion_under_limit_stays_compliant() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    validator.submit_reading(ORACLE, 1, 9, "Slight excursion")
    record = validator.get_batch_compliance(1)
    assert record.excursion_count == 1
    assert record.is_compliant is True


def test_sustained_breach_counts_once() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    validator.submit_reading(ORACLE, 1, 5, "")
    validator.submit_reading(ORACLE, 1, 9, "")
    validator.submit_reading(ORACLE, 1, 10, "")
    record = validator.get_batch_compliance(1)
    assert record.excursion_count == 1
    assert record.is_compliant is True


def test_separated_excursions_exhaust_budget_permanently() -> None:
    bus = MemoryBreachBus()
    validator = _build_validator(bus=bus)
    _mrna_batch(validator)
    for _ in range(4):
        validator.submit_reading(ORACLE, 1, 12, "")
        validator.advance_sequence(300)
    with pytest.raises(InvalidTemperature) as excinfo:
        validator.submit_reading(ORACLE, 1, 12, "")
    assert excinfo.value.code == 101
    assert excinfo.value.reading_id == 5
    record = validator.get_batch_compliance(1)
    assert record.is_compliant is False
    assert record.excursion_count == 5
    assert record.flagged_reason == EXCURSION_LIMIT_REASON
    assert validator.get_reading_count(1) == 5

    validator.advance_sequence(1000)
    with pytest.raises(InvalidTemperature):
        validator.submit_reading(ORACLE, 1, 5, "back in range")
    assert validator.get_batch_compliance(1).is_compliant is False
    assert validator.get_reading_count(1) == 6
    assert [breach.reading_id for breach in bus.breaches] == [5, 6]
    assert all(breach.reason == EXCURSION_LIMIT_REASON for breach in bus.breaches)


def test_reading_ids_dense_regardless_of_outcome() -> None:
    validator = _build_validator(max_excursions=1)
    _mrna_batch(validator)
    ids = [validator.submit_reading(ORACLE, 1, 5, "").reading_id]
    for temperature in (30, 5, 30):
        with pytest.raises(InvalidTemperature) as excinfo:
            validator.submit_reading(ORACLE, 1, temperature, "")
        ids.append(excinfo.value.reading_id)
    assert ids == [1, 2, 3, 4]
    history = validator.list_temperature_history(1)
    assert [reading.reading_id for reading in history] == [1, 2, 3, 4]
    assert [reading.temperature for reading in history] == [5, 30, 5, 30]
    timestamps = [reading.timestamp for reading in history]
    assert timestamps == sorted(timestamps)
    assert len(set(timestamps)) == len(timestamps)


def test_readings_are_tracked_per_batch() -> None:
    validator = _build_validator()
    _mrna_batch(validator, batch_id=1)
    validator.initialize_batch(2, "mRNA")
    validator.submit_reading(ORACLE, 1, 5, "")
    validator.submit_reading(ORACLE, 2, 6, "")
    validator.submit_reading(ORACLE, 1, 7, "")
    assert validator.get_reading_count(1) == 2
    assert validator.get_reading_count(2) == 1
    assert validator.get_reading_count(3) == 0
    assert validator.get_temperature_history(2, 1).temperature == 6
    assert validator.get_temperature_history(2, 2) is None


def test_submit_to_unknown_batch_fails() -> None:
    validator = _build_validator()
    with pytest.raises(BatchNotFound) as excinfo:
        validator.submit_reading(ORACLE, 42, 5, "")
    assert excinfo.value.code == 100
    assert validator.get_reading_count(42) == 0


def test_metadata_too_long_leaves_state_untouched() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    sequence = validator.current_sequence()
    before = validator.get_batch_compliance(1)
    with pytest.raises(MetadataTooLong) as excinfo:
        validator.submit_reading(ORACLE, 1, 30, "a" * 501)
    assert excinfo.value.code == 108
    assert validator.get_reading_count(1) == 0
    assert validator.get_batch_compliance(1) == before
    assert validator.current_sequence() == sequence
    validator.submit_reading(ORACLE, 1, 5, "a" * 500)
    assert validator.get_reading_count(1) == 1


def test_paused_rejects_mutations_but_allows_queries() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    validator.submit_reading(ORACLE, 1, 5, "")
    validator.pause(DEPLOYER)
    assert validator.is_paused() is True
    with pytest.raises(Paused) as excinfo:
        validator.submit_reading(ORACLE, 1, 5, "Paused")
    assert excinfo.value.code == 105
    with pytest.raises(Paused):
        validator.initialize_batch(2, "mRNA")
    assert validator.get_reading_count(1) == 1
    assert validator.get_batch_compliance(1).is_compliant is True
    assert validator.calculate_average_temperature(1) == 5
    validator.unpause(DEPLOYER)
    validator.submit_reading(ORACLE, 1, 6, "")
    assert validator.get_reading_count(1) == 2


def test_paused_check_precedes_batch_lookup() -> None:
    validator = _build_validator()
    validator.pause(DEPLOYER)
    with pytest.raises(Paused):
        validator.submit_reading(ORACLE, 1, 5, "Paused")


def test_pause_and_admin_transfer_require_admin() -> None:
    validator = _build_validator()
    assert validator.get_admin() == DEPLOYER
    with pytest.raises(Unauthorized):
        validator.pause(USER)
    with pytest.raises(Unauthorized):
        validator.unpause(USER)
    with pytest.raises(Unauthorized):
        validator.set_admin(USER, USER)
    validator.set_admin(DEPLOYER, USER)
    assert validator.get_admin() == USER
    with pytest.raises(Unauthorized):
        validator.pause(DEPLOYER)
    validator.pause(USER)
    assert validator.is_paused() is True


def test_average_temperature_floors() -> None:
    validator = _build_validator()
    _mrna_batch(validator, batch_id=1)
    validator.initialize_batch(2, "mRNA")
    validator.initialize_batch(3, "mRNA")
    validator.submit_reading(ORACLE, 1, 4, "Reading 1")
    validator.submit_reading(ORACLE, 1, 6, "Reading 2")
    validator.submit_reading(ORACLE, 2, 5, "")
    validator.submit_reading(ORACLE, 2, 6, "")
    validator.submit_reading(ORACLE, 3, -3, "")
    validator.submit_reading(ORACLE, 3, -2, "")
    assert validator.calculate_average_temperature(1) == 5
    assert validator.calculate_average_temperature(2) == 5
    assert validator.calculate_average_temperature(3) == -3


def test_average_without_readings_fails() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    with pytest.raises(NoReadings) as excinfo:
        validator.calculate_average_temperature(1)
    assert excinfo.value.code == 107
    with pytest.raises(NoReadings):
        validator.calculate_average_temperature(99)


def test_average_is_not_capped_at_one_hundred_readings() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    for _ in range(150):
        validator.submit_reading(ORACLE, 1, 4, "")
    validator.submit_reading(ORACLE, 1, 8, "")
    assert validator.get_reading_count(1) == 151
    assert validator.calculate_average_temperature(1) == (150 * 4 + 8) // 151


def test_sequence_advances_once_per_submission() -> None:
    validator = _build_validator()
    _mrna_batch(validator)
    assert validator.current_sequence() == 1000
    first = validator.submit_reading(ORACLE, 1, 5, "")
    second = validator.submit_reading(ORACLE, 1, 5, "")
    assert (first.sequence, second.sequence) == (1000, 1001)
    assert validator.get_batch_compliance(1).last_checked == 1001
    assert validator.advance_sequence(10) == 1012
    with pytest.raises(ValueError):
        validator.advance_sequence(0)


def test_state_survives_restart_with_sqlite_store(tmp_path: Path) -> None:
    dsn = f"sqlite:///{(tmp_path / 'cv_state.db').as_posix()}"
    first = _build_validator(state_store_dsn=dsn)
    _mrna_batch(first)
    first.submit_reading(ORACLE, 1, 9, "")
    first.pause(DEPLOYER)

    second = _build_validator(state_store_dsn=dsn)
    assert second.is_paused() is True
    assert second.get_admin() == DEPLOYER
    assert second.get_reading_count(1) == 1
    assert second.get_batch_compliance(1).excursion_count == 1
    assert second.current_sequence() == 1001


def test_result_codes_are_stable() -> None:
    assert {code: cls.reason for code, cls in ERRORS_BY_CODE.items()} == {
        100: "BATCH_NOT_FOUND",
        101: "INVALID_TEMPERATURE",
        102: "UNAUTHORIZED",
        103: "INVALID_THRESHOLD",
        104: "EXCURSION_LIMIT_EXCEEDED",
        105: "PAUSED",
        106: "INVALID_VACCINE_TYPE",
        107: "NO_READINGS",
        108: "METADATA_TOO_LONG",
        109: "BATCH_ALREADY_INITIALIZED",
    }
