"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against Google Sheets or memory without touching business logic
2. Use in-memory storage for testing
3. Keep the edit-window check inside the store's atomic update/delete

Stores are passed explicitly to the components that use them and have an
open/close lifecycle; there is no module-level connection.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from money_manager.models.audit import AuditEvent
from money_manager.models.transaction import (
    SortSpec,
    Transaction,
    TransactionFilter,
)


def record_is_editable(record: Transaction, cutoff: datetime) -> bool:
    """
    A record may change iff its flag is still set and it was created
    strictly after `cutoff` (= now - edit window).
    """
    return record.editable and record.created_at > cutoff


# Fields a patch may never overwrite
PROTECTED_FIELDS = frozenset({"id", "created_at", "editable"})


def merge_patch(record: Transaction, patch: dict[str, Any]) -> Transaction:
    """Return a re-validated copy of `record` with `patch` applied."""
    changes = {k: v for k, v in patch.items() if k not in PROTECTED_FIELDS}
    return Transaction.model_validate({**record.model_dump(), **changes})


class TransactionStoreInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any storage implementation must implement these methods.
    update_if_editable and delete_if_editable must perform the
    edit-window check and the write as one atomic step, across threads
    as well as coroutines: one store may be shared by callers that each
    run their own event loop.
    """

    async def open(self) -> None:
        """Acquire connections. Default: nothing to do."""

    async def close(self) -> None:
        """Release connections. Default: nothing to do."""

    @abstractmethod
    async def insert(self, record: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Returns:
            The stored record

        Raises:
            DuplicateError: If a record with the same ID exists
            StoreUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def get(self, transaction_id: UUID) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def find(
        self,
        record_filter: TransactionFilter,
        sort: Optional[SortSpec] = None,
    ) -> list[Transaction]:
        """
        All transactions matching the filter, in `sort` order
        (newest first by default). No pagination.
        """
        pass

    @abstractmethod
    async def update_if_editable(
        self,
        transaction_id: UUID,
        patch: dict[str, Any],
        cutoff: datetime,
    ) -> Transaction:
        """
        Merge `patch` into the record if it is still editable.

        Args:
            transaction_id: Record to update
            patch: Field values to overwrite. id, created_at and editable
                   are never taken from a patch.
            cutoff: now - edit window

        Returns:
            The updated record

        Raises:
            NotFoundError: If the record doesn't exist
            EditWindowClosedError: If the record is no longer editable
        """
        pass

    @abstractmethod
    async def delete_if_editable(
        self,
        transaction_id: UUID,
        cutoff: datetime,
    ) -> None:
        """
        Remove the record permanently if it is still editable.

        Raises:
            NotFoundError: If the record doesn't exist
            EditWindowClosedError: If the record is no longer editable
        """
        pass

    @abstractmethod
    async def mark_locked(self, transaction_id: UUID) -> bool:
        """
        Clear the editable flag on one record.

        Returns:
            False if the record no longer exists, True otherwise.
            Idempotent.
        """
        pass

    @abstractmethod
    async def lock_expired(self, cutoff: datetime) -> int:
        """
        Clear the editable flag on every record created at or before
        `cutoff` that still has it set.

        Returns:
            Number of records changed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class EditWindowClosedError(StorageError):
    """The record is outside its edit window and cannot be changed."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StoreUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass
