"""Compliance Validator package."""

from .config import ValidatorProfile, load_profile
from .engine import ExcursionEngine, StepOutcome
from .errors import (
    BatchAlreadyInitialized,
    BatchNotFound,
    ComplianceError,
    InvalidTemperature,
    InvalidThreshold,
    InvalidVaccineType,
    MetadataTooLong,
    NoReadings,
    Paused,
    StateStoreError,
    Unauthorized,
)
from .models import (
    BatchComplianceRecord,
    ComplianceBreach,
    ComplianceState,
    ExcursionPolicy,
    SubmitReceipt,
    TemperatureReading,
    VaccineThresholds,
)
from .validator import ComplianceValidator

__all__ = [
    "BatchAlreadyInitialized",
    "BatchComplianceRecord",
    "BatchNotFound",
    "ComplianceBreach",
    "ComplianceError",
    "ComplianceState",
    "ComplianceValidator",
    "ExcursionEngine",
    "ExcursionPolicy",
    "InvalidTemperature",
    "InvalidThreshold",
    "InvalidVaccineType",
    "MetadataTooLong",
    "NoReadings",
    "Paused",
    "StateStoreError",
    "StepOutcome",
    "SubmitReceipt",
    "TemperatureReading",
    "Unauthorized",
    "VaccineThresholds",
    "ValidatorProfile",
    "load_profile",
]
