"""
Tests for Money Manager models

Test strategy:
1. Unit tests for individual components (models, engines, validators)
2. Flow tests for the service and API with the in-memory store
3. No real Google API calls in tests (fake worksheets)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from money_manager.models.transaction import (
    CategoryTotal,
    Division,
    Period,
    SortSpec,
    Transaction,
    TransactionCreate,
    TransactionFilter,
    TransactionKind,
    TransactionQuery,
    TransactionUpdate,
    parse_datetime,
)
from money_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

from tests.conftest import START, make_transaction


class TestTransactionModel:
    """Tests for the stored Transaction model."""

    def test_transaction_defaults(self):
        """New transactions are personal and editable."""
        record = Transaction(
            kind=TransactionKind.INCOME,
            amount=Decimal("1000"),
            description="Salary",
            category="salary",
        )
        assert record.division == Division.PERSONAL
        assert record.editable is True
        assert record.created_at.tzinfo is not None

    def test_transaction_strips_whitespace(self):
        record = make_transaction(description="  Lunch  ", category=" food ")
        assert record.description == "Lunch"
        assert record.category == "food"

    def test_transaction_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            make_transaction(amount="-1")

    def test_transaction_rejects_blank_description(self):
        with pytest.raises(ValueError):
            make_transaction(description="   ")

    def test_transaction_rejects_unknown_division(self):
        with pytest.raises(ValueError):
            make_transaction(division="household")

    def test_naive_created_at_is_utc(self):
        record = make_transaction(created_at=datetime(2024, 1, 1, 9, 30))
        assert record.created_at == datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)

    def test_breakdown_key(self):
        assert make_transaction(kind="income", category="salary").breakdown_key == "income-salary"


class TestTransactionCreate:
    """Tests for create input."""

    def test_accepts_type_alias(self):
        data = TransactionCreate.model_validate({
            "type": "income",
            "amount": 1000,
            "description": "Salary",
            "category": "salary",
        })
        assert data.kind == TransactionKind.INCOME
        assert data.division == Division.PERSONAL

    def test_null_division_defaults_to_personal(self):
        data = TransactionCreate.model_validate({
            "kind": "expense",
            "amount": "5",
            "description": "Tea",
            "category": "food",
            "division": None,
        })
        assert data.division == Division.PERSONAL

    def test_ignores_server_owned_fields(self):
        data = TransactionCreate.model_validate({
            "kind": "expense",
            "amount": "5",
            "description": "Tea",
            "category": "food",
            "id": str(uuid4()),
            "editable": False,
            "created_at": "2000-01-01",
        })
        record = data.to_transaction(created_at=START)
        assert record.created_at == START
        assert record.editable is True

    def test_missing_fields_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            TransactionCreate.model_validate({"kind": "expense"})
        missing = {err["loc"][0] for err in exc_info.value.errors()}
        assert {"amount", "description", "category"} <= missing

    @pytest.mark.parametrize("raw", ["-0", "-0.00", -0.0])
    def test_negative_zero_amount_is_stored_as_zero(self, raw):
        data = TransactionCreate.model_validate({
            "type": "expense",
            "amount": raw,
            "description": "Refund",
            "category": "misc",
        })
        assert not data.amount.is_signed()
        assert data.amount == 0
        assert not data.to_transaction(created_at=START).amount.is_signed()


class TestTransactionUpdate:
    """Tests for partial updates."""

    def test_patch_contains_only_sent_fields(self):
        patch = TransactionUpdate.model_validate({"amount": "42.50"}).to_patch()
        assert patch == {"amount": Decimal("42.50")}

    def test_explicit_null_rejected(self):
        with pytest.raises(ValidationError, match="Fields cannot be null: category"):
            TransactionUpdate.model_validate({"category": None})

    def test_protected_fields_dropped(self):
        patch = TransactionUpdate.model_validate({
            "id": str(uuid4()),
            "created_at": "2020-01-01",
            "description": "Dinner",
        }).to_patch()
        assert patch == {"description": "Dinner"}

    def test_negative_zero_patch_is_zero(self):
        patch = TransactionUpdate.model_validate({"amount": "-0"}).to_patch()
        assert not patch["amount"].is_signed()


class TestQueryModels:
    """Tests for TransactionQuery, TransactionFilter and SortSpec."""

    def test_all_means_no_constraint(self):
        query = TransactionQuery.model_validate({"division": "ALL", "category": "all"})
        assert query.division is None
        assert query.category is None

    def test_category_all_is_case_sensitive(self):
        query = TransactionQuery.model_validate({"category": "All"})
        assert query.category == "All"
        record_filter = TransactionFilter(category=query.category)
        assert record_filter.matches(make_transaction(category="All"))
        assert not record_filter.matches(make_transaction(category="food"))

    def test_camel_case_dates(self):
        query = TransactionQuery.model_validate({
            "startDate": "2024-01-01",
            "endDate": "2024-01-31T23:59:59Z",
            "period": "monthly",
        })
        assert query.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert query.end_date == datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)
        assert query.period == Period.MONTHLY
        assert query.has_explicit_range

    def test_invalid_date_rejected(self):
        with pytest.raises(ValidationError, match="Invalid date"):
            TransactionQuery.model_validate({"startDate": "not-a-date"})

    def test_parse_datetime_uses_given_timezone(self):
        tz = timezone(timedelta(hours=5, minutes=30))
        parsed = parse_datetime("2024-03-01T10:00:00", tz)
        assert parsed.utcoffset() == timedelta(hours=5, minutes=30)

    def test_filter_matches_all_fields(self):
        record_filter = TransactionFilter(
            division=Division.OFFICE,
            category="food",
            created_from=START - timedelta(days=1),
            created_to=START,
        )
        assert record_filter.matches(make_transaction(division="office"))
        assert not record_filter.matches(make_transaction(division="personal"))
        assert not record_filter.matches(make_transaction(division="office", category="fuel"))
        assert not record_filter.matches(
            make_transaction(division="office", created_at=START + timedelta(seconds=1))
        )

    def test_filter_bounds_are_inclusive(self):
        record_filter = TransactionFilter(created_from=START, created_to=START)
        assert record_filter.matches(make_transaction(created_at=START))

    def test_sort_newest_first(self):
        older = make_transaction(created_at=START - timedelta(hours=1))
        newer = make_transaction(created_at=START)
        assert SortSpec().apply([older, newer]) == [newer, older]

    def test_category_total_addition(self):
        total = CategoryTotal(amount=Decimal("1.10"), count=1) + CategoryTotal(
            amount=Decimal("2.20"), count=2
        )
        assert total.amount == Decimal("3.30")
        assert total.count == 3


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Transaction recorded",
        )
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            description="Transaction deleted",
            details={"reason": "duplicate"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_deleted"
        assert log_dict["details"]["reason"] == "duplicate"

    def test_audit_event_to_sheets_row(self):
        event = AuditEvent(
            event_type=AuditEventType.EDIT_REJECTED,
            description="Update refused",
        )
        row = event.to_sheets_row()
        assert len(row) == 10
        assert row[2] == "edit_rejected"

    def test_builder_edit_rejected(self):
        transaction_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.edit_rejected(
            transaction_id=transaction_id,
            operation="update",
            reason="edit window closed",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.EDIT_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == transaction_id
        assert event.description == "Update refused: edit window closed"

    def test_builder_transaction_created(self):
        transaction_id = uuid4()
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            kind="expense",
            amount="300",
            category="food",
        )
        assert event.entity_type == "transaction"
        assert event.details == {"kind": "expense", "amount": "300", "category": "food"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
