"""CLI for operating a compliance validator profile."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .config import load_profile
from .errors import ComplianceError
from .logging_utils import configure_logging
from .validator import ComplianceValidator


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    base = argparse.ArgumentParser(add_help=False)
    base.add_argument("--profile", required=True, help="Path to validator profile YAML")

    parser = argparse.ArgumentParser(description="Cold-chain compliance validator CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    set_admin = subparsers.add_parser("set-admin", parents=[base], help="Transfer the administrator role")
    set_admin.add_argument("--caller", required=True)
    set_admin.add_argument("--new-admin", required=True)

    for name, help_text in (("pause", "Pause compliance mutations"), ("unpause", "Resume compliance mutations")):
        toggle = subparsers.add_parser(name, parents=[base], help=help_text)
        toggle.add_argument("--caller", required=True)

    set_thresholds = subparsers.add_parser("set-thresholds", parents=[base], help="Register a vaccine temperature range")
    set_thresholds.add_argument("--caller", required=True)
    set_thresholds.add_argument("--vaccine-type", required=True)
    set_thresholds.add_argument("--min-temp", required=True, type=int)
    set_thresholds.add_argument("--max-temp", required=True, type=int)

    thresholds = subparsers.add_parser("thresholds", parents=[base], help="Show a vaccine temperature range")
    thresholds.add_argument("--vaccine-type", required=True)

    init_batch = subparsers.add_parser("init-batch", parents=[base], help="Initialize a batch compliance record")
    init_batch.add_argument("--batch-id", required=True, type=int)
    init_batch.add_argument("--vaccine-type", required=True)
    init_batch.add_argument("--caller", default=None)

    submit = subparsers.add_parser("submit", parents=[base], help="Submit a temperature reading")
    submit.add_argument("--submitter", required=True)
    submit.add_argument("--batch-id", required=True, type=int)
    submit.add_argument("--temperature", required=True, type=int)
    submit.add_argument("--metadata", default="")

    compliance = subparsers.add_parser("compliance", parents=[base], help="Show a batch compliance record")
    compliance.add_argument("--batch-id", required=True, type=int)

    history = subparsers.add_parser("history", parents=[base], help="Show recorded readings for a batch")
    history.add_argument("--batch-id", required=True, type=int)
    history.add_argument("--reading-id", type=int, default=None)

    count = subparsers.add_parser("count", parents=[base], help="Show the reading count for a batch")
    count.add_argument("--batch-id", required=True, type=int)

    average = subparsers.add_parser("average", parents=[base], help="Show the floor average temperature for a batch")
    average.add_argument("--batch-id", required=True, type=int)

    subparsers.add_parser("status", parents=[base], help="Show admin, pause flag and sequence number")

    advance = subparsers.add_parser("advance", parents=[base], help="Advance the logical sequence number")
    advance.add_argument("--steps", type=int, default=1)

    return parser.parse_args(argv)


def _to_wire(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_wire(item) for item in value]
    return value


def _dispatch(validator: ComplianceValidator, args: argparse.Namespace) -> Any:
    command = args.command
    if command == "set-admin":
        validator.set_admin(args.caller, args.new_admin)
        return {"admin": validator.get_admin()}
    if command == "pause":
        validator.pause(args.caller)
        return {"paused": True}
    if command == "unpause":
        validator.unpause(args.caller)
        return {"paused": False}
    if command == "set-thresholds":
        return validator.set_vaccine_thresholds(args.caller, args.vaccine_type, args.min_temp, args.max_temp)
    if command == "thresholds":
        return validator.get_vaccine_thresholds(args.vaccine_type)
    if command == "init-batch":
        return validator.initialize_batch(args.batch_id, args.vaccine_type, caller=args.caller)
    if command == "submit":
        return validator.submit_reading(args.submitter, args.batch_id, args.temperature, args.metadata)
    if command == "compliance":
        return validator.get_batch_compliance(args.batch_id)
    if command == "history":
        if args.reading_id is not None:
            return validator.get_temperature_history(args.batch_id, args.reading_id)
        return validator.list_temperature_history(args.batch_id)
    if command == "count":
        return {"batch_id": args.batch_id, "reading_count": validator.get_reading_count(args.batch_id)}
    if command == "average":
        return {"batch_id": args.batch_id, "average": validator.calculate_average_temperature(args.batch_id)}
    if command == "status":
        return validator.status()
    if command == "advance":
        return {"sequence": validator.advance_sequence(args.steps)}
    raise SystemExit(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    profile = load_profile(Path(args.profile))
    configure_logging(log_paths=profile.log_paths)
    validator = ComplianceValidator(profile)
    try:
        result = _dispatch(validator, args)
    except ComplianceError as exc:
        print(json.dumps(exc.as_payload(), sort_keys=True, ensure_ascii=True))
        return 2
    except ValueError as exc:
        print(json.dumps({"error": "INVALID_ARGUMENT", "detail": str(exc)}, sort_keys=True, ensure_ascii=True))
        return 2
    print(json.dumps(_to_wire(result), sort_keys=True, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
