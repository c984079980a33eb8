"""HTTP-shaped API package."""

from money_manager.api.handlers import (
    APIResponse,
    TransactionAPI,
    create_api,
    summary_to_dict,
    transaction_to_dict,
)

__all__ = [
    "APIResponse",
    "TransactionAPI",
    "create_api",
    "summary_to_dict",
    "transaction_to_dict",
]
