"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the persistent backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for a personal ledger)
- No conditional writes, so update/delete atomicity is only guaranteed
  within one process (a threading.Lock around check-then-act)
- Limited query capabilities (we filter in Python)
"""

import asyncio
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from money_manager.config import GoogleSheetsSettings, get_settings
from money_manager.models.audit import AuditEvent
from money_manager.models.transaction import (
    Division,
    SortSpec,
    Transaction,
    TransactionFilter,
    TransactionKind,
)
from money_manager.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EditWindowClosedError,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
    TransactionStoreInterface,
    merge_patch,
    record_is_editable,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "created_at",
    "kind",
    "amount",
    "description",
    "category",
    "division",
    "editable",
]

# 1-based column of the editable flag, for single-cell lock writes
EDITABLE_COLUMN = TRANSACTION_COLUMNS.index("editable") + 1

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def disconnect(self) -> None:
        self._client = None
        self._spreadsheet = None

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _transaction_to_row(record: Transaction) -> list:
    """Convert a Transaction to a spreadsheet row."""
    return [
        str(record.id),
        record.created_at.isoformat(),
        record.kind.value,
        str(record.amount),
        record.description,
        record.category,
        record.division.value,
        str(record.editable),
    ]


def _row_to_transaction(row: list) -> Transaction:
    """Convert a spreadsheet row to a Transaction."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    return Transaction(
        id=UUID(safe_get(0)),
        created_at=datetime.fromisoformat(safe_get(1)),
        kind=TransactionKind(safe_get(2)),
        amount=Decimal(safe_get(3, "0")),
        description=safe_get(4),
        category=safe_get(5),
        division=Division(safe_get(6, Division.PERSONAL.value)),
        editable=safe_get(7, "True").lower() == "true",
    )


class GoogleSheetsTransactionStore(TransactionStoreInterface):
    """
    Google Sheets implementation of the transaction store.

    One transaction per row; row 1 holds the headers. gspread is blocking,
    so every sheet operation runs in a worker thread while holding one
    threading.Lock. That keeps the event loop free and makes check-then-act
    atomic for every caller in the process, whichever loop it runs on.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = threading.Lock()

    async def _call(self, action: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Run `fn(*args)` under the store lock in a worker thread."""
        def locked() -> Any:
            with self._lock:
                return fn(*args)

        try:
            return await asyncio.to_thread(locked)
        except StorageError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to {action}: {e}")

    async def open(self) -> None:
        await self._call("open transactions sheet", self._client.get_transactions_sheet)

    async def close(self) -> None:
        self._client.disconnect()

    def _find_row(self, transaction_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """(1-based sheet row index, row values) for an ID, or (None, None)."""
        all_rows = self._client.get_transactions_sheet().get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == str(transaction_id):
                return idx, row
        return None, None

    def _write_row(self, idx: int, record: Transaction) -> None:
        """Overwrite one whole row in a single API call."""
        row = _transaction_to_row(record)
        self._client.get_transactions_sheet().update(
            range_name=f"A{idx}:{rowcol_to_a1(idx, len(row))}",
            values=[row],
            value_input_option="RAW",
        )

    # -------------------------------------------------------------------------
    # Blocking bodies, always run through _call
    # -------------------------------------------------------------------------

    def _insert(self, record: Transaction) -> Transaction:
        idx, _ = self._find_row(record.id)
        if idx is not None:
            raise DuplicateError(f"Transaction already exists: {record.id}")
        sheet = self._client.get_transactions_sheet()
        sheet.append_row(_transaction_to_row(record), value_input_option="RAW")
        return record

    def _get(self, transaction_id: UUID) -> Optional[Transaction]:
        _, row = self._find_row(transaction_id)
        return _row_to_transaction(row) if row else None

    def _find(self, record_filter: TransactionFilter) -> list[Transaction]:
        all_rows = self._client.get_transactions_sheet().get_all_values()[1:]
        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                record = _row_to_transaction(row)
            except ValueError as e:
                logger.warning("sheets_row_skipped", row_id=row[0], error=str(e))
                continue
            if record_filter.matches(record):
                records.append(record)
        return records

    def _update(
        self,
        transaction_id: UUID,
        patch: dict[str, Any],
        cutoff: datetime,
    ) -> Transaction:
        idx, row = self._find_row(transaction_id)
        if idx is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        record = _row_to_transaction(row)
        if not record_is_editable(record, cutoff):
            raise EditWindowClosedError(
                f"Transaction {transaction_id} can no longer be edited"
            )
        updated = merge_patch(record, patch)
        self._write_row(idx, updated)
        return updated

    def _delete(self, transaction_id: UUID, cutoff: datetime) -> None:
        idx, row = self._find_row(transaction_id)
        if idx is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        if not record_is_editable(_row_to_transaction(row), cutoff):
            raise EditWindowClosedError(
                f"Transaction {transaction_id} can no longer be deleted"
            )
        self._client.get_transactions_sheet().delete_rows(idx)

    def _mark_locked(self, transaction_id: UUID) -> bool:
        idx, _ = self._find_row(transaction_id)
        if idx is None:
            return False
        self._client.get_transactions_sheet().update_cell(
            idx, EDITABLE_COLUMN, str(False)
        )
        return True

    def _lock_expired(self, cutoff: datetime) -> int:
        changed = 0
        sheet = self._client.get_transactions_sheet()
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                record = _row_to_transaction(row)
            except ValueError:
                continue
            if record.editable and record.created_at <= cutoff:
                sheet.update_cell(idx, EDITABLE_COLUMN, str(False))
                changed += 1
        return changed

    # -------------------------------------------------------------------------
    # Store interface
    # -------------------------------------------------------------------------

    async def insert(self, record: Transaction) -> Transaction:
        """Append a transaction row."""
        return await self._call("save transaction", self._insert, record)

    async def get(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by its ID."""
        return await self._call("get transaction", self._get, transaction_id)

    async def find(
        self,
        record_filter: TransactionFilter,
        sort: Optional[SortSpec] = None,
    ) -> list[Transaction]:
        """Filter every row in Python."""
        records = await self._call("list transactions", self._find, record_filter)
        return (sort or SortSpec()).apply(records)

    async def update_if_editable(
        self,
        transaction_id: UUID,
        patch: dict[str, Any],
        cutoff: datetime,
    ) -> Transaction:
        """Rewrite the row if the record is still inside its edit window."""
        return await self._call(
            "update transaction", self._update, transaction_id, patch, cutoff
        )

    async def delete_if_editable(
        self,
        transaction_id: UUID,
        cutoff: datetime,
    ) -> None:
        """Delete the row if the record is still inside its edit window."""
        await self._call("delete transaction", self._delete, transaction_id, cutoff)

    async def mark_locked(self, transaction_id: UUID) -> bool:
        """Flip the editable cell to False."""
        return await self._call("lock transaction", self._mark_locked, transaction_id)

    async def lock_expired(self, cutoff: datetime) -> int:
        """Flip the editable cell on every expired row still marked editable."""
        return await self._call(
            "lock expired transactions", self._lock_expired, cutoff
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False
