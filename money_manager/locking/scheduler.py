"""
Edit-Lock Scheduler

A transaction may be updated or deleted for 12 hours after it was created.
After that it is permanently read-only.

DESIGN DECISION: Editability is derived from created_at every time it
matters. The stored `editable` flag is a cache of that fact, kept current by:
1. A single in-process due-queue fed by on_create (no timer per record)
2. A periodic store-wide sweep, which also repairs flags after a restart

The mutation gate never trusts a stale True flag: the store compares
created_at against the cutoff inside its atomic update/delete.
"""

import asyncio
import heapq
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

import structlog

from money_manager.audit import AuditLogger
from money_manager.models.transaction import Transaction, utcnow
from money_manager.services.storage import (
    StorageError,
    TransactionStoreInterface,
    record_is_editable,
)


EDIT_WINDOW = timedelta(hours=12)


class EditWindow:
    """The fixed period after creation during which a record can change."""

    def __init__(self, duration: timedelta = EDIT_WINDOW):
        if duration <= timedelta(0):
            raise ValueError("Edit window must be positive")
        self.duration = duration

    def cutoff(self, now: datetime) -> datetime:
        """Records created at or before this instant are locked."""
        return now - self.duration

    def locks_at(self, record: Transaction) -> datetime:
        return record.created_at + self.duration

    def is_editable(self, record: Transaction, now: datetime) -> bool:
        """True iff now - created_at < window and the flag is still set."""
        return record_is_editable(record, self.cutoff(now))

    def refresh(self, record: Transaction, now: datetime) -> Transaction:
        """Copy of `record` whose flag reflects `now`. Never sets it back to True."""
        if record.editable and not self.is_editable(record, now):
            return record.model_copy(update={"editable": False})
        return record


class EditLockScheduler:
    """
    Writes editable=False into the store once a record's window has passed.

    All writes are fire-and-forget: a missing record is a no-op and a store
    failure is logged and dropped, since the gate recomputes from created_at.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        window: Optional[EditWindow] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._window = window or EditWindow()
        self._audit_logger = audit_logger
        self._clock = clock
        self._due: list[tuple[datetime, UUID]] = []
        self._task: Optional[asyncio.Task] = None
        self._logger = structlog.get_logger("money_manager.locking")

    @property
    def window(self) -> EditWindow:
        return self._window

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    @property
    def pending(self) -> int:
        """Number of registered records not yet locked by run_due."""
        return len(self._due)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_create(self, transaction_id: UUID, created_at: datetime) -> None:
        """Register the one-shot lock for a new record."""
        heapq.heappush(self._due, (created_at + self._window.duration, transaction_id))

    async def run_due(self, now: Optional[datetime] = None) -> int:
        """
        Lock every registered record whose deadline has passed.

        Returns the number of records actually flagged.
        """
        now = now or self._clock()
        locked = 0
        while self._due and self._due[0][0] <= now:
            _, transaction_id = heapq.heappop(self._due)
            try:
                if await self._store.mark_locked(transaction_id):
                    locked += 1
            except StorageError as e:
                self._logger.warning(
                    "lock_write_dropped",
                    transaction_id=str(transaction_id),
                    error=str(e),
                )
        if locked and self._audit_logger:
            await self._audit_logger.log_transactions_locked(locked, source="schedule")
        return locked

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Store-wide pass that flags every expired record."""
        now = now or self._clock()
        try:
            locked = await self._store.lock_expired(self._window.cutoff(now))
        except StorageError as e:
            self._logger.warning("lock_sweep_failed", error=str(e))
            return 0
        if locked and self._audit_logger:
            await self._audit_logger.log_transactions_locked(locked, source="sweep")
        return locked

    async def tick(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock()
        return await self.run_due(now) + await self.sweep(now)

    async def _run(self, interval: float) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(interval)

    def start(self, interval: float) -> None:
        """Run tick() every `interval` seconds in a background task."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(interval))
        self._logger.info("lock_scheduler_started", interval_seconds=interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._logger.info("lock_scheduler_stopped")
