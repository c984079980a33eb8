"""
Flow tests for TransactionService against the in-memory store.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from money_manager.config import Settings
from money_manager.models.audit import AuditEventType
from money_manager.models.transaction import (
    TransactionCreate,
    TransactionQuery,
    TransactionUpdate,
)
from money_manager.orchestrator import create_app_components
from money_manager.services.storage import (
    EditWindowClosedError,
    InMemoryTransactionStore,
    NotFoundError,
    StoreUnavailableError,
)

from tests.conftest import START, FixedClock, make_transaction, run


def lunch() -> TransactionCreate:
    return TransactionCreate.model_validate({
        "type": "expense",
        "amount": "120.50",
        "description": "Lunch",
        "category": "food",
        "division": "office",
    })


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class TestCreate:
    """Recording transactions."""

    def test_create_then_get(self, service):
        created = run(service.create(lunch()))
        fetched = run(service.get(created.id))

        assert fetched == created
        assert fetched.created_at == START
        assert fetched.editable is True
        assert fetched.amount == Decimal("120.50")

    def test_create_registers_lock(self, service):
        run(service.create(lunch()))
        assert service.scheduler.pending == 1

    def test_create_is_audited(self, service, audit_storage):
        created = run(service.create(lunch()))
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.entity_id == created.id

    def test_create_on_closed_store(self, service, store, audit_storage):
        run(store.close())
        with pytest.raises(StoreUnavailableError):
            run(service.create(lunch()))
        assert event_types(audit_storage) == [AuditEventType.STORE_ERROR]

    def test_get_missing(self, service):
        with pytest.raises(NotFoundError):
            run(service.get(uuid4()))

    def test_get_recomputes_flag(self, service, clock):
        created = run(service.create(lunch()))
        clock.advance(hours=13)
        assert run(service.get(created.id)).editable is False


class TestUpdate:
    """Partial updates inside and outside the edit window."""

    def test_update_inside_window(self, service, clock):
        created = run(service.create(lunch()))
        clock.advance(hours=11)

        updated = run(service.update(
            created.id,
            TransactionUpdate.model_validate({"amount": "99", "category": "meals"}),
        ))

        assert updated.amount == Decimal("99")
        assert updated.category == "meals"
        assert updated.description == "Lunch"
        assert updated.created_at == created.created_at
        assert updated.id == created.id

    def test_update_after_window_leaves_record_unchanged(self, service, clock, audit_storage):
        created = run(service.create(lunch()))
        clock.advance(hours=13)

        with pytest.raises(EditWindowClosedError):
            run(service.update(created.id, TransactionUpdate(amount=Decimal("1"))))

        assert run(service.get(created.id)).amount == Decimal("120.50")
        assert audit_storage.events[-1].event_type == AuditEventType.EDIT_REJECTED

    def test_stale_flag_does_not_allow_update(self, store, service, clock):
        # No sweep or scheduled lock has run, so the stored flag is still True
        created = run(service.create(lunch()))
        clock.advance(hours=12, seconds=1)
        assert run(store.get(created.id)).editable is True

        with pytest.raises(EditWindowClosedError):
            run(service.update(created.id, TransactionUpdate(description="Dinner")))

    def test_update_missing(self, service):
        with pytest.raises(NotFoundError):
            run(service.update(uuid4(), TransactionUpdate(description="x")))

    def test_patch_cannot_move_created_at(self, service):
        created = run(service.create(lunch()))
        patch = TransactionUpdate.model_validate({
            "created_at": "2030-01-01",
            "id": str(uuid4()),
            "description": "Team lunch",
        })

        updated = run(service.update(created.id, patch))

        assert updated.id == created.id
        assert updated.created_at == START

    def test_update_is_audited_with_fields(self, service, audit_storage):
        created = run(service.create(lunch()))
        run(service.update(created.id, TransactionUpdate(description="Brunch")))
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.TRANSACTION_UPDATED
        assert event.details["changed_fields"] == ["description"]


class TestDelete:
    """Deletion follows the same gate as update."""

    def test_delete_inside_window(self, service):
        created = run(service.create(lunch()))
        run(service.delete(created.id))
        with pytest.raises(NotFoundError):
            run(service.get(created.id))

    def test_delete_after_window(self, service, clock):
        created = run(service.create(lunch()))
        clock.advance(hours=12)
        with pytest.raises(EditWindowClosedError):
            run(service.delete(created.id))
        assert run(service.get(created.id)).id == created.id

    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            run(service.delete(uuid4()))

    def test_delete_after_scheduled_lock(self, service, clock):
        created = run(service.create(lunch()))
        clock.advance(hours=12)
        run(service.scheduler.run_due())
        with pytest.raises(EditWindowClosedError):
            run(service.delete(created.id))


class TestQueries:
    """List and summary flows."""

    def test_list_refreshes_flags(self, store, service, clock):
        run(store.insert(make_transaction(created_at=START - timedelta(hours=20))))
        run(store.insert(make_transaction(created_at=START - timedelta(hours=1))))

        records = run(service.list_transactions(TransactionQuery()))

        assert [r.editable for r in records] == [True, False]

    def test_list_is_audited(self, service, audit_storage):
        run(service.list_transactions(TransactionQuery()))
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.QUERY_EXECUTED
        assert event.details["result_count"] == 0

    def test_summary_filters_by_division(self, store, service):
        run(store.insert(make_transaction(kind="income", amount="1000", category="salary")))
        run(store.insert(make_transaction(amount="300", division="office")))

        summary = run(service.summary(TransactionQuery.model_validate({"division": "office"})))

        assert summary.transaction_count == 1
        assert summary.total_expense == Decimal("300")

    def test_list_on_closed_store(self, store, service):
        run(store.close())
        with pytest.raises(StoreUnavailableError):
            run(service.list_transactions(TransactionQuery()))

    def test_summary_on_closed_store(self, store, service, audit_storage):
        run(store.close())
        with pytest.raises(StoreUnavailableError):
            run(service.summary(TransactionQuery()))
        assert audit_storage.events[-1].details["operation"] == "summary"


class TestCreateAppComponents:
    """Factory wiring."""

    def test_memory_backend_and_window(self, monkeypatch):
        monkeypatch.setenv("APP_EDIT_WINDOW_HOURS", "2")
        monkeypatch.setenv("APP_STORAGE_BACKEND", "memory")
        clock = FixedClock()

        service, scheduler, store = create_app_components(Settings(), clock=clock)

        assert isinstance(store, InMemoryTransactionStore)
        assert service.window.duration == timedelta(hours=2)
        assert scheduler is service.scheduler

    def test_explicit_store_is_used(self):
        store = InMemoryTransactionStore()
        _, _, used = create_app_components(Settings(), store=store)
        assert used is store


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
