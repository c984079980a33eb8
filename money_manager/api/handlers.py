"""
HTTP-Shaped API Surface

Transport-agnostic handlers for the Money Manager routes. Each handler takes
already-decoded query parameters / JSON bodies and returns an APIResponse
(status code + JSON-ready body). Routing belongs to the host; the
Streamlit app calls the handlers directly.

Handler to route mapping:
    GET    /transactions       list, filtered and newest first
    POST   /transactions       create            201 / 400
    PUT    /transactions/{id}  partial update    200 / 400 / 403 / 404
    DELETE /transactions/{id}  delete            200 / 403 / 404
    GET    /summary            aggregates (division/category only)
    GET    /health             liveness
    GET    /                   service banner

Response bodies keep the field names the existing web client reads
(`_id`, `type`, `timestamp`, `canEdit`, camelCase summary keys).
"""

from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from money_manager.audit import AuditLogger, create_correlation_id
from money_manager.config import Settings, get_settings
from money_manager.locking import EditLockScheduler
from money_manager.models.transaction import Transaction, TransactionSummary, utcnow
from money_manager.orchestrator import TransactionService, create_app_components
from money_manager.services.storage import (
    EditWindowClosedError,
    NotFoundError,
    StorageError,
    TransactionStoreInterface,
)
from money_manager.validation import InvalidInputError, TransactionValidator


logger = structlog.get_logger("money_manager.api")


class APIResponse(BaseModel):
    """Status code plus JSON-ready body."""

    status_code: int
    body: Any = None


def transaction_to_dict(record: Transaction) -> dict:
    """Convert a transaction to the response shape."""
    return {
        "_id": str(record.id),
        "type": record.kind.value,
        "amount": float(record.amount),
        "description": record.description,
        "category": record.category,
        "division": record.division.value,
        "timestamp": record.created_at.isoformat(),
        "canEdit": record.editable,
    }


def summary_to_dict(summary: TransactionSummary) -> dict:
    """Convert a summary to the response shape."""
    return {
        "totalIncome": float(summary.total_income),
        "totalExpense": float(summary.total_expense),
        "netBalance": float(summary.net_balance),
        "transactionCount": summary.transaction_count,
        "categoryBreakdown": {
            key: {"amount": float(total.amount), "count": total.count}
            for key, total in summary.category_breakdown.items()
        },
        "divisionBreakdown": {
            division.value: float(amount)
            for division, amount in summary.division_breakdown.items()
        },
    }


def _error(status_code: int, message: str, **extra: Any) -> APIResponse:
    return APIResponse(status_code=status_code, body={"error": message, **extra})


class TransactionAPI:
    """
    Request handlers wired to a TransactionService.

    startup()/shutdown() own the store connection and the background
    lock sweep; call them from the host framework's lifecycle hooks.
    """

    def __init__(
        self,
        service: TransactionService,
        validator: Optional[TransactionValidator] = None,
        store: Optional[TransactionStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._service = service
        self._validator = validator or TransactionValidator()
        self._store = store
        self._audit_logger = audit_logger
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock

    @property
    def scheduler(self) -> EditLockScheduler:
        return self._service.scheduler

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def startup(self, run_scheduler: bool = True) -> None:
        """Open the store, repair stale flags, start the lock sweep."""
        if self._store is not None:
            await self._store.open()
        await self.scheduler.sweep()
        if run_scheduler:
            self.scheduler.start(self._sweep_interval)
        logger.info("api_started")

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        if self._store is not None:
            await self._store.close()
        logger.info("api_stopped")

    # -------------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------------

    def _locked_message(self, operation: str) -> str:
        hours = self._service.window.duration.total_seconds() / 3600
        return f"Transaction cannot be {operation} after {hours:g} hours"

    async def _invalid(
        self,
        operation: str,
        error: InvalidInputError,
        correlation_id: UUID,
    ) -> APIResponse:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                operation=operation,
                issues=error.issue_dicts(),
                correlation_id=correlation_id,
            )
        return _error(400, error.summary, issues=error.issue_dicts())

    def _server_error(self, operation: str, error: StorageError) -> APIResponse:
        logger.error("request_failed", operation=operation, error=str(error))
        return _error(500, str(error))

    @staticmethod
    def _parse_id(raw_id: Any) -> Optional[UUID]:
        """A malformed ID cannot name a stored record."""
        if isinstance(raw_id, UUID):
            return raw_id
        try:
            return UUID(str(raw_id))
        except ValueError:
            return None

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        params: Optional[Mapping[str, Any]] = None,
    ) -> APIResponse:
        """GET /transactions?period&division&category&startDate&endDate"""
        correlation_id = create_correlation_id()
        try:
            query = self._validator.parse_query(params)
            records = await self._service.list_transactions(query, correlation_id)
        except InvalidInputError as e:
            return await self._invalid("list", e, correlation_id)
        except StorageError as e:
            return self._server_error("list", e)
        return APIResponse(
            status_code=200,
            body=[transaction_to_dict(r) for r in records],
        )

    async def create_transaction(self, body: Any) -> APIResponse:
        """POST /transactions"""
        correlation_id = create_correlation_id()
        try:
            data = self._validator.parse_create(body)
            record = await self._service.create(data, correlation_id)
        except InvalidInputError as e:
            return await self._invalid("create", e, correlation_id)
        except StorageError as e:
            return self._server_error("create", e)
        return APIResponse(status_code=201, body=transaction_to_dict(record))

    async def update_transaction(self, raw_id: Any, body: Any) -> APIResponse:
        """PUT /transactions/{id}"""
        correlation_id = create_correlation_id()
        transaction_id = self._parse_id(raw_id)
        if transaction_id is None:
            return _error(404, "Transaction not found")
        try:
            data = self._validator.parse_update(body)
            record = await self._service.update(transaction_id, data, correlation_id)
        except InvalidInputError as e:
            return await self._invalid("update", e, correlation_id)
        except NotFoundError:
            return _error(404, "Transaction not found")
        except EditWindowClosedError:
            return _error(403, self._locked_message("edited"))
        except StorageError as e:
            return self._server_error("update", e)
        return APIResponse(status_code=200, body=transaction_to_dict(record))

    async def delete_transaction(self, raw_id: Any) -> APIResponse:
        """DELETE /transactions/{id}"""
        correlation_id = create_correlation_id()
        transaction_id = self._parse_id(raw_id)
        if transaction_id is None:
            return _error(404, "Transaction not found")
        try:
            await self._service.delete(transaction_id, correlation_id)
        except NotFoundError:
            return _error(404, "Transaction not found")
        except EditWindowClosedError:
            return _error(403, self._locked_message("deleted"))
        except StorageError as e:
            return self._server_error("delete", e)
        return APIResponse(
            status_code=200,
            body={"message": "Transaction deleted successfully"},
        )

    async def get_summary(
        self,
        params: Optional[Mapping[str, Any]] = None,
    ) -> APIResponse:
        """GET /summary?division&category (temporal parameters are ignored)"""
        correlation_id = create_correlation_id()
        try:
            query = self._validator.parse_summary_query(params)
            summary = await self._service.summary(query, correlation_id)
        except InvalidInputError as e:
            return await self._invalid("summary", e, correlation_id)
        except StorageError as e:
            return self._server_error("summary", e)
        return APIResponse(status_code=200, body=summary_to_dict(summary))

    def health(self) -> APIResponse:
        """GET /health"""
        return APIResponse(
            status_code=200,
            body={
                "status": "OK",
                "timestamp": self._clock().astimezone(timezone.utc).isoformat(),
            },
        )

    def index(self) -> APIResponse:
        """GET /"""
        return APIResponse(
            status_code=200,
            body={
                "message": "Money Manager API is running",
                "endpoints": {
                    "transactions": "/api/transactions",
                    "summary": "/api/summary",
                    "health": "/api/health",
                },
            },
        )


def create_api(
    settings: Optional[Settings] = None,
    **component_overrides: Any,
) -> TransactionAPI:
    """
    Build a TransactionAPI from settings.

    Keyword overrides are passed through to create_app_components
    (store, audit_storage, clock).
    """
    settings = settings or get_settings()
    app = settings.app
    service, scheduler, store = create_app_components(settings, **component_overrides)
    return TransactionAPI(
        service,
        validator=TransactionValidator(tz=app.tzinfo, strict_period=app.strict_period),
        store=store,
        audit_logger=scheduler.audit_logger,
        sweep_interval_seconds=app.lock_sweep_interval_seconds,
        clock=component_overrides.get("clock", utcnow),
    )
