from __future__ import annotations

import pytest

from cold_chain.compliance_validator.errors import InvalidThreshold, Paused, Unauthorized
from cold_chain.compliance_validator.guard import AdminGuard
from cold_chain.compliance_validator.store import MemoryStateStore
from cold_chain.compliance_validator.thresholds import ThresholdRegistry


def test_bootstrap_seeds_deployer_and_keeps_existing_values() -> None:
    store = MemoryStateStore()
    guard = AdminGuard("deployer")
    with store.transaction() as txn:
        guard.bootstrap(txn)
        assert guard.get_admin(txn) == "deployer"
        assert guard.is_paused(txn) is False
        guard.set_admin(txn, "deployer", "ops")
        guard.set_paused(txn, "ops", True)
    with store.transaction() as txn:
        AdminGuard("someone-else").bootstrap(txn)
        assert guard.get_admin(txn) == "ops"
        assert guard.is_paused(txn) is True


def test_require_active_raises_when_paused() -> None:
    store = MemoryStateStore()
    guard = AdminGuard("deployer")
    with store.transaction() as txn:
        guard.bootstrap(txn)
        guard.require_active(txn)
        guard.set_paused(txn, "deployer", True)
        with pytest.raises(Paused):
            guard.require_active(txn)


def test_non_admin_calls_are_unauthorized() -> None:
    store = MemoryStateStore()
    guard = AdminGuard("deployer")
    with store.transaction() as txn:
        guard.bootstrap(txn)
        with pytest.raises(Unauthorized):
            guard.require_admin(txn, None)
        with pytest.raises(Unauthorized):
            guard.set_paused(txn, "intruder", True)
        with pytest.raises(ValueError):
            guard.set_admin(txn, "deployer", " ")
        assert guard.is_paused(txn) is False


def test_empty_deployer_is_rejected() -> None:
    with pytest.raises(ValueError):
        AdminGuard("")


def test_registry_checks_admin_before_bounds() -> None:
    store = MemoryStateStore()
    guard = AdminGuard("deployer")
    registry = ThresholdRegistry(guard)
    with store.transaction() as txn:
        guard.bootstrap(txn)
        with pytest.raises(Unauthorized):
            registry.set(txn, "intruder", "mRNA", 8, 2)
        with pytest.raises(InvalidThreshold):
            registry.set(txn, "deployer", "", 2, 8)
        entry = registry.set(txn, "deployer", "mRNA", 2, 8)
        assert (entry.min_temp, entry.max_temp) == (2, 8)
        assert registry.get(txn, "mRNA") == entry
