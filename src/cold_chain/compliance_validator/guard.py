"""Administrator identity and pause flag."""

from __future__ import annotations

import logging

from .errors import Paused, Unauthorized
from .store import TABLE_SETTINGS, StateTransaction

logger = logging.getLogger(__name__)

_ADMIN_KEY = "admin"
_PAUSED_KEY = "paused"


class AdminGuard:
    """Gates administrative mutations on a single administrator identity."""

    def __init__(self, deployer: str) -> None:
        if not str(deployer or "").strip():
            raise ValueError("deployer identity must be non-empty")
        self.deployer = deployer

    def bootstrap(self, txn: StateTransaction) -> None:
        if txn.get(TABLE_SETTINGS, _ADMIN_KEY) is None:
            txn.put(TABLE_SETTINGS, _ADMIN_KEY, {"value": self.deployer})
        if txn.get(TABLE_SETTINGS, _PAUSED_KEY) is None:
            txn.put(TABLE_SETTINGS, _PAUSED_KEY, {"value": False})

    def get_admin(self, txn: StateTransaction) -> str:
        row = txn.get(TABLE_SETTINGS, _ADMIN_KEY)
        return self.deployer if row is None else str(row["value"])

    def is_paused(self, txn: StateTransaction) -> bool:
        row = txn.get(TABLE_SETTINGS, _PAUSED_KEY)
        return bool(row and row["value"])

    def require_admin(self, txn: StateTransaction, caller: str | None) -> None:
        if caller is None or caller != self.get_admin(txn):
            raise Unauthorized(f"caller {caller!r} is not the administrator")

    def require_active(self, txn: StateTransaction) -> None:
        if self.is_paused(txn):
            raise Paused("compliance validator is paused")

    def set_admin(self, txn: StateTransaction, caller: str, new_admin: str) -> None:
        self.require_admin(txn, caller)
        if not str(new_admin or "").strip():
            raise ValueError("new_admin must be non-empty")
        txn.put(TABLE_SETTINGS, _ADMIN_KEY, {"value": new_admin})
        logger.info("CV: admin transferred (from=%s, to=%s)", caller, new_admin)

    def set_paused(self, txn: StateTransaction, caller: str, paused: bool) -> None:
        self.require_admin(txn, caller)
        txn.put(TABLE_SETTINGS, _PAUSED_KEY, {"value": bool(paused)})
        logger.info("CV: validator %s (by=%s)", "paused" if paused else "unpaused", caller)
