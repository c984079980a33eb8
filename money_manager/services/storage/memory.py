"""
In-Memory Storage Implementation

Used by the test suite and for local runs with APP_STORAGE_BACKEND=memory.
Nothing survives a restart.

A single threading.Lock serialises every access, so the edit-window check
and the write it guards happen as one step even when several threads, each
with its own event loop, share the store (Streamlit sessions do). No
critical section awaits.
"""

import threading
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from money_manager.models.audit import AuditEvent
from money_manager.models.transaction import (
    SortSpec,
    Transaction,
    TransactionFilter,
)
from money_manager.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EditWindowClosedError,
    NotFoundError,
    StoreUnavailableError,
    TransactionStoreInterface,
    merge_patch,
    record_is_editable,
)


class InMemoryTransactionStore(TransactionStoreInterface):
    """Dict-backed transaction store. Records are copied in and out."""

    def __init__(self):
        self._records: dict[UUID, Transaction] = {}
        self._lock = threading.Lock()
        self._open = False

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    def _ensure_open(self) -> None:
        if not self._open:
            raise StoreUnavailableError("In-memory store is closed")

    async def insert(self, record: Transaction) -> Transaction:
        self._ensure_open()
        with self._lock:
            if record.id in self._records:
                raise DuplicateError(f"Transaction already exists: {record.id}")
            self._records[record.id] = record.model_copy()
        return record.model_copy()

    async def get(self, transaction_id: UUID) -> Optional[Transaction]:
        self._ensure_open()
        with self._lock:
            record = self._records.get(transaction_id)
        return record.model_copy() if record else None

    async def find(
        self,
        record_filter: TransactionFilter,
        sort: Optional[SortSpec] = None,
    ) -> list[Transaction]:
        self._ensure_open()
        with self._lock:
            matches = [
                record.model_copy()
                for record in self._records.values()
                if record_filter.matches(record)
            ]
        return (sort or SortSpec()).apply(matches)

    async def update_if_editable(
        self,
        transaction_id: UUID,
        patch: dict[str, Any],
        cutoff: datetime,
    ) -> Transaction:
        self._ensure_open()
        with self._lock:
            record = self._records.get(transaction_id)
            if record is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            if not record_is_editable(record, cutoff):
                raise EditWindowClosedError(
                    f"Transaction {transaction_id} can no longer be edited"
                )
            updated = merge_patch(record, patch)
            self._records[transaction_id] = updated
        return updated.model_copy()

    async def delete_if_editable(
        self,
        transaction_id: UUID,
        cutoff: datetime,
    ) -> None:
        self._ensure_open()
        with self._lock:
            record = self._records.get(transaction_id)
            if record is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            if not record_is_editable(record, cutoff):
                raise EditWindowClosedError(
                    f"Transaction {transaction_id} can no longer be deleted"
                )
            del self._records[transaction_id]

    async def mark_locked(self, transaction_id: UUID) -> bool:
        self._ensure_open()
        with self._lock:
            record = self._records.get(transaction_id)
            if record is None:
                return False
            if record.editable:
                self._records[transaction_id] = record.model_copy(
                    update={"editable": False}
                )
            return True

    async def lock_expired(self, cutoff: datetime) -> int:
        self._ensure_open()
        changed = 0
        with self._lock:
            for transaction_id, record in list(self._records.items()):
                if record.editable and record.created_at <= cutoff:
                    self._records[transaction_id] = record.model_copy(
                        update={"editable": False}
                    )
                    changed += 1
        return changed


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True
