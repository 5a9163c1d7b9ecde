"""Flask service wrapper for the compliance validator."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from flask import Flask, jsonify, request
from pydantic import BaseModel, ValidationError

from .config import load_profile
from .errors import (
    BatchAlreadyInitialized,
    BatchNotFound,
    ComplianceError,
    Paused,
    Unauthorized,
)
from .logging_utils import configure_logging
from .validator import ComplianceValidator

ACTOR_HEADER = "X-CV-Actor"


class ThresholdsBody(BaseModel):
    min_temp: int
    max_temp: int


class BatchBody(BaseModel):
    batch_id: int
    vaccine_type: str


class ReadingBody(BaseModel):
    temperature: int
    metadata: str = ""


class AdminBody(BaseModel):
    new_admin: str


def _status_for(exc: ComplianceError) -> int:
    if isinstance(exc, Unauthorized):
        return 403
    if isinstance(exc, BatchNotFound):
        return 404
    if isinstance(exc, (Paused, BatchAlreadyInitialized)):
        return 409
    return 422


def _not_found(kind: str) -> Any:
    return jsonify({"error": "NOT_FOUND", "kind": kind}), 404


def create_app(profile_path: str | None = None, *, validator: ComplianceValidator | None = None) -> Flask:
    if validator is None:
        if profile_path is None:
            raise ValueError("profile_path or validator is required")
        profile = load_profile(Path(profile_path))
        configure_logging(log_paths=profile.log_paths)
        validator = ComplianceValidator(profile)
    cv = validator

    app = Flask(__name__)

    @app.errorhandler(ComplianceError)
    def handle_compliance_error(exc: ComplianceError) -> Any:
        return jsonify(exc.as_payload()), _status_for(exc)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError) -> Any:
        return jsonify({"error": "INVALID_REQUEST", "details": exc.errors(include_url=False, include_context=False)}), 400

    @app.errorhandler(ValueError)
    def handle_value_error(exc: ValueError) -> Any:
        return jsonify({"error": "INVALID_ARGUMENT", "detail": str(exc)}), 400

    def actor() -> str | None:
        return request.headers.get(ACTOR_HEADER)

    @app.get("/status")
    def status() -> Any:
        return jsonify(cv.status())

    @app.post("/admin/transfer")
    def transfer_admin() -> Any:
        body = AdminBody(**(request.get_json(force=True) or {}))
        cv.set_admin(actor() or "", body.new_admin)
        return jsonify({"admin": cv.get_admin()})

    @app.post("/admin/pause")
    def pause() -> Any:
        cv.pause(actor() or "")
        return jsonify({"paused": True})

    @app.post("/admin/unpause")
    def unpause() -> Any:
        cv.unpause(actor() or "")
        return jsonify({"paused": False})

    @app.put("/thresholds/<vaccine_type>")
    def put_thresholds(vaccine_type: str) -> Any:
        body = ThresholdsBody(**(request.get_json(force=True) or {}))
        entry = cv.set_vaccine_thresholds(actor() or "", vaccine_type, body.min_temp, body.max_temp)
        return jsonify(entry.model_dump(mode="json"))

    @app.get("/thresholds/<vaccine_type>")
    def get_thresholds(vaccine_type: str) -> Any:
        entry = cv.get_vaccine_thresholds(vaccine_type)
        if entry is None:
            return _not_found("thresholds")
        return jsonify(entry.model_dump(mode="json"))

    @app.post("/batches")
    def initialize_batch() -> Any:
        body = BatchBody(**(request.get_json(force=True) or {}))
        record = cv.initialize_batch(body.batch_id, body.vaccine_type, caller=actor())
        return jsonify(record.model_dump(mode="json")), 201

    @app.get("/batches/<int:batch_id>")
    def get_batch(batch_id: int) -> Any:
        record = cv.get_batch_compliance(batch_id)
        if record is None:
            return _not_found("batch")
        return jsonify(record.model_dump(mode="json"))

    @app.post("/batches/<int:batch_id>/readings")
    def submit_reading(batch_id: int) -> Any:
        body = ReadingBody(**(request.get_json(force=True) or {}))
        receipt = cv.submit_reading(actor() or "", batch_id, body.temperature, body.metadata)
        return jsonify(receipt.model_dump(mode="json")), 201

    @app.get("/batches/<int:batch_id>/readings")
    def list_readings(batch_id: int) -> Any:
        readings = cv.list_temperature_history(batch_id)
        return jsonify(
            {
                "batch_id": batch_id,
                "reading_count": cv.get_reading_count(batch_id),
                "readings": [reading.model_dump(mode="json") for reading in readings],
            }
        )

    @app.get("/batches/<int:batch_id>/readings/<int:reading_id>")
    def get_reading(batch_id: int, reading_id: int) -> Any:
        reading = cv.get_temperature_history(batch_id, reading_id)
        if reading is None:
            return _not_found("reading")
        return jsonify(reading.model_dump(mode="json"))

    @app.get("/batches/<int:batch_id>/average")
    def average(batch_id: int) -> Any:
        return jsonify({"batch_id": batch_id, "average": cv.calculate_average_temperature(batch_id)})

    return app
