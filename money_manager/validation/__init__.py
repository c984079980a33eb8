"""Input validation package."""

from money_manager.validation.validator import (
    InvalidInputError,
    TransactionValidator,
    ValidationIssue,
    issues_from_pydantic,
)

__all__ = [
    "InvalidInputError",
    "TransactionValidator",
    "ValidationIssue",
    "issues_from_pydantic",
]
