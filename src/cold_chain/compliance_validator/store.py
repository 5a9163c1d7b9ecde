"""Ordered key-value state store for the compliance validator (memory/SQLite/Postgres)."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import Any, Iterator, Protocol
from urllib.parse import urlparse

from .errors import StateStoreError

TABLE_THRESHOLDS = "thresholds"
TABLE_COMPLIANCE = "compliance"
TABLE_READINGS = "readings"
TABLE_COUNTERS = "counters"
TABLE_SETTINGS = "settings"

_PG_LOCK_KEY = 0x63637631


class StateTransaction(Protocol):
    def get(self, table: str, key: str) -> dict[str, Any] | None:
        ...

    def put(self, table: str, key: str, value: dict[str, Any]) -> None:
        ...

    def delete(self, table: str, key: str) -> None:
        ...


class StateStore:
    def transaction(self) -> Any:
        """Return a context manager yielding a StateTransaction.

        Writes become visible only when the block exits cleanly; an exception
        discards every write made inside the block.
        """
        raise NotImplementedError


class _MemoryTransaction:
    def __init__(self, rows: dict[tuple[str, str], str]) -> None:
        self._rows = rows
        self._writes: dict[tuple[str, str], str | None] = {}

    def get(self, table: str, key: str) -> dict[str, Any] | None:
        slot = (table, key)
        if slot in self._writes:
            raw = self._writes[slot]
        else:
            raw = self._rows.get(slot)
        return None if raw is None else json.loads(raw)

    def put(self, table: str, key: str, value: dict[str, Any]) -> None:
        self._writes[(table, key)] = _encode(value)

    def delete(self, table: str, key: str) -> None:
        self._writes[(table, key)] = None

    def commit(self) -> None:
        for slot, raw in self._writes.items():
            if raw is None:
                self._rows.pop(slot, None)
            else:
                self._rows[slot] = raw


@dataclass
class MemoryStateStore(StateStore):
    rows: dict[tuple[str, str], str] = field(default_factory=dict)

    @contextmanager
    def transaction(self) -> Iterator[_MemoryTransaction]:
        txn = _MemoryTransaction(self.rows)
        yield txn
        txn.commit()


class _SqlTransaction:
    def __init__(self, cursor: Any, placeholder: str) -> None:
        self._cursor = cursor
        self._p = placeholder

    def get(self, table: str, key: str) -> dict[str, Any] | None:
        self._cursor.execute(
            f"SELECT value_json FROM cc_state WHERE table_name = {self._p} AND state_key = {self._p}",
            (table, key),
        )
        row = self._cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except (TypeError, ValueError) as exc:
            raise StateStoreError(f"STATE_ROW_UNREADABLE:{table}:{key}") from exc

    def put(self, table: str, key: str, value: dict[str, Any]) -> None:
        p = self._p
        self._cursor.execute(
            f"""
            INSERT INTO cc_state (table_name, state_key, value_json, updated_at_utc)
            VALUES ({p}, {p}, {p}, {p})
            ON CONFLICT (table_name, state_key) DO UPDATE SET
                value_json = excluded.value_json,
                updated_at_utc = excluded.updated_at_utc
            """,
            (table, key, _encode(value), _utc_now()),
        )

    def delete(self, table: str, key: str) -> None:
        self._cursor.execute(
            f"DELETE FROM cc_state WHERE table_name = {self._p} AND state_key = {self._p}",
            (table, key),
        )


@dataclass
class SqliteStateStore(StateStore):
    path: Path

    def __post_init__(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS cc_state (
                        table_name TEXT NOT NULL,
                        state_key TEXT NOT NULL,
                        value_json TEXT NOT NULL,
                        updated_at_utc TEXT NOT NULL,
                        PRIMARY KEY (table_name, state_key)
                    );
                    """
                )
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[_SqlTransaction]:
        conn = self._connect()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                yield _SqlTransaction(conn.cursor(), "?")
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.path))


@dataclass
class PostgresStateStore(StateStore):
    dsn: str

    def __post_init__(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cc_state (
                    table_name TEXT NOT NULL,
                    state_key TEXT NOT NULL,
                    value_json TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    PRIMARY KEY (table_name, state_key)
                )
                """
            )

    @contextmanager
    def transaction(self) -> Iterator[_SqlTransaction]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                # Serializes validator transactions across processes.
                cur.execute("SELECT pg_advisory_xact_lock(%s)", (_PG_LOCK_KEY,))
                yield _SqlTransaction(cur, "%s")

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.dsn)


def build_state_store(dsn: str | None) -> StateStore:
    value = str(dsn or "").strip()
    if not value or value.startswith("memory://"):
        return MemoryStateStore()
    scheme = urlparse(value).scheme.lower()
    if scheme.startswith("sqlite"):
        return SqliteStateStore(path=Path(_sqlite_path(value)))
    if scheme.startswith("postgres"):
        return PostgresStateStore(dsn=value)
    raise StateStoreError(f"Unsupported state_store_dsn scheme: {scheme or value}")


def reading_key(batch_id: int, reading_id: int) -> str:
    return f"{batch_id}:{reading_id}"


def _sqlite_path(dsn: str) -> str:
    if dsn.startswith("sqlite:///"):
        return dsn[len("sqlite:///") :]
    if dsn.startswith("sqlite://"):
        return dsn[len("sqlite://") :]
    return dsn


def _encode(value: dict[str, Any]) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=True, separators=(",", ":"))


def _utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()
