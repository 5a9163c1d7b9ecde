"""Configuration loader for compliance validator profiles."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .bus import DEFAULT_BREACH_TOPIC
from .models import EXCURSION_DURATION, INITIAL_SEQUENCE, MAX_EXCURSIONS, MAX_METADATA_LEN, ExcursionPolicy

_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ValidatorProfile(BaseModel):
    profile_id: str = "local"
    deployer: str = Field(..., min_length=1)
    state_store_dsn: str = "memory://"
    initial_sequence: int = INITIAL_SEQUENCE
    max_excursions: int = Field(default=MAX_EXCURSIONS, ge=1)
    excursion_duration: int = Field(default=EXCURSION_DURATION, ge=0)
    max_metadata_len: int = Field(default=MAX_METADATA_LEN, ge=0)
    allow_reinitialize: bool = False
    breach_bus_kind: str = "memory"
    breach_bus_root: str | None = None
    breach_topic: str = DEFAULT_BREACH_TOPIC
    log_paths: list[str] = []

    def excursion_policy(self) -> ExcursionPolicy:
        return ExcursionPolicy(max_excursions=self.max_excursions, excursion_duration=self.excursion_duration)


def _expand_str(value: str) -> str:
    def replacer(match: re.Match[str]) -> str:
        token = match.group(1)
        if ":-" in token:
            key, default = token.split(":-", 1)
            actual = os.getenv(key, "")
            return actual if actual.strip() else default
        actual = os.getenv(token, "")
        if not actual.strip():
            raise ValueError(f"missing environment variable: {token}")
        return actual

    return _VAR_PATTERN.sub(replacer, value)


def _expand_payload(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_str(value)
    if isinstance(value, list):
        return [_expand_payload(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _expand_payload(item) for key, item in value.items()}
    return value


def load_profile(path: Path) -> ValidatorProfile:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"profile must be a mapping: {path}")
    expanded = _expand_payload(data)
    return ValidatorProfile(**expanded)
