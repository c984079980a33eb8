"""Query filtering and aggregation package."""

from money_manager.queries.aggregation import SummaryAccumulator, summarize
from money_manager.queries.filters import (
    FilterEngine,
    build_filter,
    describe_filter,
    period_start,
)

__all__ = [
    "FilterEngine",
    "SummaryAccumulator",
    "build_filter",
    "describe_filter",
    "period_start",
    "summarize",
]
