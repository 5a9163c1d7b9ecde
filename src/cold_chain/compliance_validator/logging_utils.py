"""Logging helpers for the compliance validator."""

from __future__ import annotations

import logging
from pathlib import Path


class BreachFilter(logging.Filter):
    """Keeps warnings and anything tagged as a compliance event."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if record.levelno >= logging.WARNING:
            return True
        return bool(getattr(record, "compliance_event", False))


def configure_logging(level: int = logging.INFO, log_paths: list[str] | None = None) -> None:
    """Configure default logging if no handlers are present.

    The first log path receives the full stream; a second path, when given,
    receives only warnings and compliance events.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    for index, raw_path in enumerate((log_paths or [])[:2]):
        path = Path(raw_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        if index == 1:
            handler.addFilter(BreachFilter())
        handlers.append(handler)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
