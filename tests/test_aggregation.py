"""Tests for the aggregation engine."""

from decimal import Decimal

import pytest

from money_manager.models.transaction import CategoryTotal, Division, TransactionSummary
from money_manager.queries import SummaryAccumulator, summarize

from tests.conftest import make_transaction


def salary_and_food():
    return [
        make_transaction(kind="income", amount="1000", category="salary", division="personal"),
        make_transaction(kind="expense", amount="300", category="food", division="office"),
    ]


class TestSummarize:
    """Totals and breakdowns."""

    def test_income_and_expense_scenario(self):
        summary = summarize(salary_and_food())

        assert summary.total_income == Decimal("1000")
        assert summary.total_expense == Decimal("300")
        assert summary.net_balance == Decimal("700")
        assert summary.transaction_count == 2
        assert summary.category_breakdown == {
            "income-salary": CategoryTotal(amount=Decimal("1000"), count=1),
            "expense-food": CategoryTotal(amount=Decimal("300"), count=1),
        }
        assert summary.division_breakdown == {
            Division.OFFICE: Decimal("300"),
            Division.PERSONAL: Decimal("0"),
        }

    def test_empty_set(self):
        summary = summarize([])
        assert summary.transaction_count == 0
        assert summary.net_balance == Decimal("0")
        assert summary.category_breakdown == {}
        assert set(summary.division_breakdown) == {Division.OFFICE, Division.PERSONAL}

    def test_income_not_in_division_breakdown(self):
        summary = summarize([
            make_transaction(kind="income", amount="50", division="office"),
        ])
        assert summary.division_breakdown[Division.OFFICE] == Decimal("0")

    def test_same_category_different_kind_kept_apart(self):
        summary = summarize([
            make_transaction(kind="income", amount="20", category="refund"),
            make_transaction(kind="expense", amount="5", category="refund"),
            make_transaction(kind="expense", amount="7", category="refund"),
        ])
        assert summary.category_breakdown["income-refund"].count == 1
        assert summary.category_breakdown["expense-refund"] == CategoryTotal(
            amount=Decimal("12"), count=2
        )

    def test_many_small_amounts_do_not_drift(self):
        records = [make_transaction(amount="0.10") for _ in range(1000)]
        assert summarize(records).total_expense == Decimal("100.00")

    def test_net_balance_is_exact_difference(self):
        summary = summarize([
            make_transaction(kind="income", amount="0.30"),
            make_transaction(kind="expense", amount="0.10"),
            make_transaction(kind="expense", amount="0.20"),
        ])
        assert summary.net_balance == summary.total_income - summary.total_expense
        assert summary.net_balance == Decimal("0")


class TestAdditivity:
    """Summaries over disjoint sets combine element-wise."""

    def test_combine_matches_union(self):
        first = salary_and_food()
        second = [
            make_transaction(kind="expense", amount="45.50", category="food", division="personal"),
            make_transaction(kind="income", amount="200", category="bonus"),
        ]
        combined = summarize(first).combine(summarize(second))
        assert combined == summarize(first + second)

    def test_combine_with_empty_is_identity(self):
        summary = summarize(salary_and_food())
        assert summary.combine(TransactionSummary()) == summary

    def test_accumulator_matches_summarize(self):
        records = salary_and_food()
        accumulator = SummaryAccumulator()
        for record in records:
            accumulator.add(record)
        assert accumulator.result() == summarize(records)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
