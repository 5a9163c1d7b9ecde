"""Compliance validator data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

MAX_EXCURSIONS = 5
EXCURSION_DURATION = 300
MAX_METADATA_LEN = 500
MAX_VACCINE_TYPE_LEN = 32
MAX_REASON_LEN = 256
MIN_TEMP_CEILING = 100
MAX_TEMP_FLOOR = -50
INITIAL_SEQUENCE = 1000

EXCURSION_LIMIT_REASON = "Excursion limit exceeded"


class ComplianceState(str, Enum):
    COMPLIANT = "COMPLIANT"
    COMPLIANT_EXCURSION = "COMPLIANT_EXCURSION"
    NON_COMPLIANT = "NON_COMPLIANT"


class ExcursionPolicy(BaseModel):
    max_excursions: int = Field(default=MAX_EXCURSIONS, ge=1)
    excursion_duration: int = Field(default=EXCURSION_DURATION, ge=0)


class VaccineThresholds(BaseModel):
    vaccine_type: str = Field(..., min_length=1, max_length=MAX_VACCINE_TYPE_LEN)
    min_temp: int
    max_temp: int

    @model_validator(mode="after")
    def _check_bounds(self) -> "VaccineThresholds":
        if not thresholds_valid(self.min_temp, self.max_temp):
            raise ValueError("thresholds require max_temp > min_temp, min_temp <= 100, max_temp >= -50")
        return self


class BatchComplianceRecord(BaseModel):
    batch_id: int
    is_compliant: bool = True
    last_checked: int
    flagged_reason: str | None = Field(default=None, max_length=MAX_REASON_LEN)
    excursion_count: int = Field(default=0, ge=0)
    last_excursion_at: int | None = None
    vaccine_type: str
    min_temp: int
    max_temp: int

    @property
    def state(self) -> ComplianceState:
        if not self.is_compliant:
            return ComplianceState.NON_COMPLIANT
        if self.last_excursion_at is not None:
            return ComplianceState.COMPLIANT_EXCURSION
        return ComplianceState.COMPLIANT

    def in_range(self, temperature: int) -> bool:
        return self.min_temp <= temperature <= self.max_temp


class TemperatureReading(BaseModel):
    batch_id: int
    reading_id: int = Field(..., ge=1)
    temperature: int
    timestamp: int
    submitter: str
    metadata: str = ""


class ComplianceBreach(BaseModel):
    batch_id: int
    reason: str
    excursion_count: int
    sequence: int
    reading_id: int


class SubmitReceipt(BaseModel):
    batch_id: int
    reading_id: int
    sequence: int
    record: BatchComplianceRecord


def thresholds_valid(min_temp: int, max_temp: int) -> bool:
    return max_temp > min_temp and min_temp <= MIN_TEMP_CEILING and max_temp >= MAX_TEMP_FLOOR
