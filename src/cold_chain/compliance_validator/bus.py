"""Compliance-breach notification publishers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import json
from pathlib import Path
from typing import Any

from .models import ComplianceBreach

DEFAULT_BREACH_TOPIC = "cc.compliance.breach.v1"


@dataclass(frozen=True)
class PublishedMessage:
    topic: str
    message_id: str
    path: str | None = None


def breach_message_id(breach: ComplianceBreach) -> str:
    text = f"cc_breach|{breach.batch_id}|{breach.sequence}|{breach.reading_id}"
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:32]


def _envelope(topic: str, message_id: str, breach: ComplianceBreach) -> dict[str, Any]:
    return {
        "topic": topic,
        "message_id": message_id,
        "published_at_utc": datetime.now(tz=timezone.utc).isoformat(),
        "partition_key": str(breach.batch_id),
        "payload": breach.model_dump(mode="json"),
    }


class BreachBus:
    def publish(self, breach: ComplianceBreach) -> PublishedMessage:
        raise NotImplementedError


class MemoryBreachBus(BreachBus):
    def __init__(self, topic: str = DEFAULT_BREACH_TOPIC) -> None:
        self.topic = topic
        self.messages: list[dict[str, Any]] = []

    def publish(self, breach: ComplianceBreach) -> PublishedMessage:
        message_id = breach_message_id(breach)
        if not any(item["message_id"] == message_id for item in self.messages):
            self.messages.append(_envelope(self.topic, message_id, breach))
        return PublishedMessage(topic=self.topic, message_id=message_id)

    @property
    def breaches(self) -> list[ComplianceBreach]:
        return [ComplianceBreach(**item["payload"]) for item in self.messages]


class FileBreachBus(BreachBus):
    def __init__(self, root: Path, topic: str = DEFAULT_BREACH_TOPIC) -> None:
        self.root = root
        self.topic = topic

    def publish(self, breach: ComplianceBreach) -> PublishedMessage:
        message_id = breach_message_id(breach)
        topic_dir = self.root / self.topic
        topic_dir.mkdir(parents=True, exist_ok=True)
        path = topic_dir / f"{message_id}.json"
        if not path.exists():
            envelope = _envelope(self.topic, message_id, breach)
            path.write_text(json.dumps(envelope, sort_keys=True, ensure_ascii=True) + "\n", encoding="utf-8")
        return PublishedMessage(topic=self.topic, message_id=message_id, path=str(path))


def build_breach_bus(kind: str, root: str | None = None, topic: str = DEFAULT_BREACH_TOPIC) -> BreachBus:
    normalized = (kind or "memory").strip().lower()
    if normalized == "memory":
        return MemoryBreachBus(topic=topic)
    if normalized == "file":
        if not root:
            raise ValueError("breach_bus_root is required for the file breach bus")
        return FileBreachBus(Path(root), topic=topic)
    raise ValueError(f"Unsupported breach_bus_kind: {kind}")
