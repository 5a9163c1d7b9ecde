"""Compliance validator result codes and errors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import BatchComplianceRecord


class ComplianceError(RuntimeError):
    """Base class for caller-visible compliance validator failures."""

    code: int = 0
    reason: str = "COMPLIANCE_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)

    def as_payload(self) -> dict[str, Any]:
        return {"error": self.reason, "code": self.code, "message": str(self)}


class BatchNotFound(ComplianceError):
    code = 100
    reason = "BATCH_NOT_FOUND"


class InvalidTemperature(ComplianceError):
    """Raised when a submission leaves the batch non-compliant.

    The reading is already recorded when this is raised; `reading_id` and
    `record` describe the committed state.
    """

    code = 101
    reason = "INVALID_TEMPERATURE"

    def __init__(
        self,
        message: str | None = None,
        *,
        reading_id: int | None = None,
        record: "BatchComplianceRecord | None" = None,
    ) -> None:
        super().__init__(message)
        self.reading_id = reading_id
        self.record = record

    def as_payload(self) -> dict[str, Any]:
        payload = super().as_payload()
        if self.reading_id is not None:
            payload["reading_id"] = self.reading_id
        if self.record is not None:
            payload["record"] = self.record.model_dump(mode="json")
        return payload


class Unauthorized(ComplianceError):
    code = 102
    reason = "UNAUTHORIZED"


class InvalidThreshold(ComplianceError):
    code = 103
    reason = "INVALID_THRESHOLD"


class ExcursionLimitExceeded(ComplianceError):
    # Reserved result code; limit breaches surface as InvalidTemperature.
    code = 104
    reason = "EXCURSION_LIMIT_EXCEEDED"


class Paused(ComplianceError):
    code = 105
    reason = "PAUSED"


class InvalidVaccineType(ComplianceError):
    code = 106
    reason = "INVALID_VACCINE_TYPE"


class NoReadings(ComplianceError):
    code = 107
    reason = "NO_READINGS"


class MetadataTooLong(ComplianceError):
    code = 108
    reason = "METADATA_TOO_LONG"


class BatchAlreadyInitialized(ComplianceError):
    code = 109
    reason = "BATCH_ALREADY_INITIALIZED"


class StateStoreError(RuntimeError):
    """Raised when state store operations fail."""


ERRORS_BY_CODE: dict[int, type[ComplianceError]] = {
    cls.code: cls
    for cls in (
        BatchNotFound,
        InvalidTemperature,
        Unauthorized,
        InvalidThreshold,
        ExcursionLimitExceeded,
        Paused,
        InvalidVaccineType,
        NoReadings,
        MetadataTooLong,
        BatchAlreadyInitialized,
    )
}
