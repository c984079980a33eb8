"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves tests
and local runs.
"""

from money_manager.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EditWindowClosedError,
    NotFoundError,
    PROTECTED_FIELDS,
    StorageError,
    StoreUnavailableError,
    TransactionStoreInterface,
    merge_patch,
    record_is_editable,
)
from money_manager.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTransactionStore,
)
from money_manager.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStoreInterface",
    "PROTECTED_FIELDS",
    "merge_patch",
    "record_is_editable",
    # Exceptions
    "DuplicateError",
    "EditWindowClosedError",
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryTransactionStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStore",
]
