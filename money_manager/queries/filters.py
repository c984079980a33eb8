"""
Filter Engine

Turns a typed TransactionQuery into a TransactionFilter and runs it against
the record store.

Rules (all optional, combined with AND):
- division / category: exact match; "all" was already mapped to None
- period: lower bound on created_at
    weekly  -> now - 7 days
    monthly -> start of the current calendar month
    yearly  -> start of the current calendar year
- start_date + end_date: closed interval on created_at, replacing period
  entirely. A lone bound is ignored.

Calendar boundaries are computed in the reporting timezone.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional

from money_manager.models.transaction import (
    Period,
    SortSpec,
    Transaction,
    TransactionFilter,
    TransactionQuery,
    utcnow,
)
from money_manager.services.storage import TransactionStoreInterface


WEEK = timedelta(days=7)


def period_start(period: Period, now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Inclusive lower bound on created_at for a relative period."""
    if period == Period.WEEKLY:
        return now - WEEK

    local = now.astimezone(tz or timezone.utc)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == Period.MONTHLY:
        return midnight.replace(day=1)
    if period == Period.YEARLY:
        return midnight.replace(month=1, day=1)
    raise ValueError(f"Unsupported period: {period}")


def build_filter(
    query: TransactionQuery,
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> TransactionFilter:
    """Build the store predicate for a query evaluated at `now`."""
    created_from = None
    created_to = None

    if query.has_explicit_range:
        created_from = query.start_date
        created_to = query.end_date
    elif query.period is not None:
        created_from = period_start(query.period, now, tz)

    return TransactionFilter(
        division=query.division,
        category=query.category,
        created_from=created_from,
        created_to=created_to,
    )


def describe_filter(record_filter: TransactionFilter) -> dict:
    """Flat, JSON-friendly view of a filter for audit details."""
    return {
        "division": record_filter.division.value if record_filter.division else "all",
        "category": record_filter.category or "all",
        "created_from": record_filter.created_from.isoformat() if record_filter.created_from else None,
        "created_to": record_filter.created_to.isoformat() if record_filter.created_to else None,
    }


class FilterEngine:
    """Runs TransactionQuery objects against a record store."""

    def __init__(
        self,
        store: TransactionStoreInterface,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._tz = tz
        self._clock = clock

    def build(self, query: TransactionQuery) -> TransactionFilter:
        return build_filter(query, self._clock(), self._tz)

    async def find(
        self,
        query: TransactionQuery,
        sort: Optional[SortSpec] = None,
    ) -> tuple[TransactionFilter, list[Transaction]]:
        """Matching records, newest first, plus the filter that selected them."""
        record_filter = self.build(query)
        records = await self._store.find(record_filter, sort or SortSpec())
        return record_filter, records
