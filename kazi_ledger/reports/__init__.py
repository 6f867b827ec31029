"""Report aggregation package."""

from kazi_ledger.reports.aggregator import (
    SETTLEMENT_CATEGORY,
    debt_balances,
    settle_debt,
    summarize,
    total_outstanding,
    window_start,
)
from kazi_ledger.reports.executor import ReportExecutor

__all__ = [
    "SETTLEMENT_CATEGORY",
    "ReportExecutor",
    "debt_balances",
    "settle_debt",
    "summarize",
    "total_outstanding",
    "window_start",
]
