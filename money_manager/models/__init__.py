"""
Data Models Package

This package contains all Pydantic models used in Money Manager.
All data flowing through the system must conform to these schemas.
"""

from money_manager.models.transaction import (
    ALL,
    CategoryTotal,
    Division,
    Period,
    SortSpec,
    Transaction,
    TransactionCreate,
    TransactionFilter,
    TransactionKind,
    TransactionQuery,
    TransactionSummary,
    TransactionUpdate,
    ensure_aware,
    normalize_amount,
    parse_datetime,
    utcnow,
)
from money_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "ALL",
    "CategoryTotal",
    "Division",
    "Period",
    "SortSpec",
    "Transaction",
    "TransactionCreate",
    "TransactionFilter",
    "TransactionKind",
    "TransactionQuery",
    "TransactionSummary",
    "TransactionUpdate",
    "ensure_aware",
    "normalize_amount",
    "parse_datetime",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
