"""
Shared fixtures.

Time is driven by FixedClock so edit-window tests never depend on the
wall clock. Async code is run with asyncio.run inside plain tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from money_manager.audit import AuditLogger
from money_manager.locking import EditLockScheduler, EditWindow
from money_manager.models.transaction import Transaction
from money_manager.orchestrator import TransactionService
from money_manager.services.storage import (
    InMemoryAuditStorage,
    InMemoryTransactionStore,
)


START = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryTransactionStore:
    store = InMemoryTransactionStore()
    run(store.open())
    return store


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def scheduler(store, audit_storage, clock) -> EditLockScheduler:
    return EditLockScheduler(
        store,
        window=EditWindow(),
        audit_logger=AuditLogger(audit_storage),
        clock=clock,
    )


@pytest.fixture
def service(store, scheduler, audit_storage, clock) -> TransactionService:
    return TransactionService(
        store,
        scheduler=scheduler,
        audit_logger=AuditLogger(audit_storage),
        tz=timezone.utc,
        clock=clock,
    )


def make_transaction(**overrides) -> Transaction:
    """A valid expense, created at START unless overridden."""
    values = {
        "kind": "expense",
        "amount": "100",
        "description": "Lunch",
        "category": "food",
        "division": "personal",
        "created_at": START,
    }
    values.update(overrides)
    return Transaction(**values)
