"""
Main Orchestrator for Money Manager

This module ties together all the components and defines the flows for:
1. Recording, updating and deleting transactions (gated by the edit window)
2. Listing transactions through the filter engine
3. Summarising transactions through the aggregation engine

DESIGN DECISION: The orchestrator enforces the boundaries:
- Update/delete are checked against created_at at request time, inside the
  store's atomic operation, never against a cached flag alone
- Every mutation and query is audited
- Store failures are not retried here; they propagate as StoreUnavailableError
"""

from datetime import datetime, timedelta, tzinfo
from typing import Callable, Optional
from uuid import UUID, uuid4

from money_manager.audit import AuditLogger, create_correlation_id
from money_manager.config import Settings, get_settings
from money_manager.locking import EditLockScheduler, EditWindow
from money_manager.models.transaction import (
    Transaction,
    TransactionCreate,
    TransactionQuery,
    TransactionSummary,
    TransactionUpdate,
    utcnow,
)
from money_manager.queries import FilterEngine, describe_filter, summarize
from money_manager.services.storage import (
    AuditStorageInterface,
    EditWindowClosedError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
    InMemoryAuditStorage,
    InMemoryTransactionStore,
    NotFoundError,
    StoreUnavailableError,
    TransactionStoreInterface,
)


class TransactionService:
    """
    Orchestrates every transaction flow.

    Flow for mutations:
    1. Input arrives already validated (TransactionCreate / TransactionUpdate)
    2. Store performs check-then-act atomically with the current cutoff
    3. Outcome is audited, success or refusal
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        scheduler: Optional[EditLockScheduler] = None,
        audit_logger: Optional[AuditLogger] = None,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._clock = clock
        self._scheduler = scheduler or EditLockScheduler(store, clock=clock)
        self._window: EditWindow = self._scheduler.window
        self._audit_logger = audit_logger
        self._filters = FilterEngine(store, tz=tz, clock=clock)

    @property
    def window(self) -> EditWindow:
        return self._window

    @property
    def scheduler(self) -> EditLockScheduler:
        return self._scheduler

    async def _store_failed(
        self,
        operation: str,
        error: StoreUnavailableError,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_store_error(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def create(
        self,
        data: TransactionCreate,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Record a new transaction.

        created_at is stamped here; the record starts editable and is
        registered with the lock scheduler.
        """
        correlation_id = correlation_id or create_correlation_id()
        record = data.to_transaction(created_at=self._clock())

        try:
            stored = await self._store.insert(record)
        except StoreUnavailableError as e:
            await self._store_failed("create", e, correlation_id)
            raise

        self._scheduler.on_create(stored.id, stored.created_at)

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(stored, correlation_id)

        return stored

    async def get(self, transaction_id: UUID) -> Transaction:
        """Fetch one record with its flag recomputed for now."""
        record = await self._store.get(transaction_id)
        if record is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return self._window.refresh(record, self._clock())

    def is_editable(self, record: Transaction) -> bool:
        return self._window.is_editable(record, self._clock())

    async def update(
        self,
        transaction_id: UUID,
        data: TransactionUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Apply a partial update while the record is still editable.

        Raises:
            NotFoundError: No such record
            EditWindowClosedError: Edit window has passed
        """
        correlation_id = correlation_id or create_correlation_id()
        patch = data.to_patch()
        cutoff = self._window.cutoff(self._clock())

        try:
            updated = await self._store.update_if_editable(transaction_id, patch, cutoff)
        except EditWindowClosedError:
            if self._audit_logger:
                await self._audit_logger.log_edit_rejected(
                    transaction_id=transaction_id,
                    operation="update",
                    reason="edit window closed",
                    correlation_id=correlation_id,
                )
            raise
        except StoreUnavailableError as e:
            await self._store_failed("update", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                changed_fields=sorted(patch),
                correlation_id=correlation_id,
            )

        return updated

    async def delete(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Permanently remove a record while it is still editable.

        Raises:
            NotFoundError: No such record
            EditWindowClosedError: Edit window has passed
        """
        correlation_id = correlation_id or create_correlation_id()
        cutoff = self._window.cutoff(self._clock())

        try:
            await self._store.delete_if_editable(transaction_id, cutoff)
        except EditWindowClosedError:
            if self._audit_logger:
                await self._audit_logger.log_edit_rejected(
                    transaction_id=transaction_id,
                    operation="delete",
                    reason="edit window closed",
                    correlation_id=correlation_id,
                )
            raise
        except StoreUnavailableError as e:
            await self._store_failed("delete", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )

    async def list_transactions(
        self,
        query: TransactionQuery,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """Matching records, newest first, with flags recomputed for now."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            record_filter, records = await self._filters.find(query)
        except StoreUnavailableError as e:
            await self._store_failed("list", e, correlation_id)
            raise

        now = self._clock()
        records = [self._window.refresh(r, now) for r in records]

        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                query_id=uuid4(),
                filters=describe_filter(record_filter),
                result_count=len(records),
                correlation_id=correlation_id,
            )

        return records

    async def summary(
        self,
        query: TransactionQuery,
        correlation_id: Optional[UUID] = None,
    ) -> TransactionSummary:
        """
        Aggregate over the filtered set.

        The summary either covers every matching record or raises.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            record_filter, records = await self._filters.find(query)
        except StoreUnavailableError as e:
            await self._store_failed("summary", e, correlation_id)
            raise

        result = summarize(records)

        if self._audit_logger:
            await self._audit_logger.log_summary_computed(
                query_id=uuid4(),
                filters=describe_filter(record_filter),
                transaction_count=result.transaction_count,
                correlation_id=correlation_id,
            )

        return result


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[TransactionStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    clock: Callable[[], datetime] = utcnow,
) -> tuple[TransactionService, EditLockScheduler, TransactionStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        store: Use this record store instead of the configured backend
        audit_storage: Use this audit store instead of the configured backend
        clock: Source of "now"; tests pass a fixed clock

    Returns:
        (transaction_service, lock_scheduler, store)
        The store is not opened here.
    """
    settings = settings or get_settings()
    app = settings.app

    if store is None:
        if app.storage_backend == "google_sheets":
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            store = GoogleSheetsTransactionStore(sheets_client)
            if audit_storage is None:
                audit_storage = GoogleSheetsAuditStorage(sheets_client)
        else:
            store = InMemoryTransactionStore()

    if audit_storage is None:
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    window = EditWindow(duration=timedelta(hours=app.edit_window_hours))
    scheduler = EditLockScheduler(
        store,
        window=window,
        audit_logger=audit_logger,
        clock=clock,
    )
    service = TransactionService(
        store,
        scheduler=scheduler,
        audit_logger=audit_logger,
        tz=app.tzinfo,
        clock=clock,
    )

    return service, scheduler, store
