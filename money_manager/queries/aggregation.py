"""
Aggregation Engine

Reduces a filtered set of transactions into a TransactionSummary.

All sums are Decimal, so many small amounts never drift. The division
breakdown counts expenses only; income has no division total.
"""

from decimal import Decimal
from typing import Iterable

from money_manager.models.transaction import (
    CategoryTotal,
    Division,
    Transaction,
    TransactionKind,
    TransactionSummary,
)


class SummaryAccumulator:
    """Builds a summary one record at a time."""

    def __init__(self):
        self._income = Decimal("0")
        self._expense = Decimal("0")
        self._count = 0
        self._categories: dict[str, CategoryTotal] = {}
        self._divisions: dict[Division, Decimal] = {d: Decimal("0") for d in Division}

    def add(self, record: Transaction) -> None:
        self._count += 1

        if record.kind == TransactionKind.INCOME:
            self._income += record.amount
        else:
            self._expense += record.amount
            self._divisions[record.division] += record.amount

        key = record.breakdown_key
        entry = self._categories.get(key) or CategoryTotal()
        self._categories[key] = CategoryTotal(
            amount=entry.amount + record.amount,
            count=entry.count + 1,
        )

    def extend(self, records: Iterable[Transaction]) -> None:
        for record in records:
            self.add(record)

    def result(self) -> TransactionSummary:
        return TransactionSummary(
            total_income=self._income,
            total_expense=self._expense,
            transaction_count=self._count,
            category_breakdown=dict(self._categories),
            division_breakdown=dict(self._divisions),
        )


def summarize(records: Iterable[Transaction]) -> TransactionSummary:
    """Totals, category breakdown and expense-by-division for `records`."""
    accumulator = SummaryAccumulator()
    accumulator.extend(records)
    return accumulator.result()
