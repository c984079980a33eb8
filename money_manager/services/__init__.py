"""Services package."""

from money_manager.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    EditWindowClosedError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
    InMemoryAuditStorage,
    InMemoryTransactionStore,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
    TransactionStoreInterface,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "EditWindowClosedError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStore",
    "InMemoryAuditStorage",
    "InMemoryTransactionStore",
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    "TransactionStoreInterface",
]
