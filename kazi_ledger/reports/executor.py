"""
Report Execution

DESIGN DECISION: Reports are DETERMINISTIC.
A QUERY from the extractor only names a window. The numbers always come
from stored transactions, never from the extractor or a language model.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from kazi_ledger.models.transaction import (
    DebtBalance,
    QueryRange,
    ReportSummary,
    Transaction,
)
from kazi_ledger.reports.aggregator import (
    debt_balances,
    settle_debt,
    summarize,
    window_start,
)
from kazi_ledger.services.storage import TransactionStorageInterface


class ReportExecutor:
    """
    Runs reports against transaction storage.

    GUARANTEES:
    - Only returns real data from storage
    - An empty window is an empty report, not an error
    """

    def __init__(self, storage: TransactionStorageInterface):
        self._storage = storage

    async def summary(
        self,
        user_id: str,
        query_range: QueryRange,
        now: Optional[datetime] = None,
    ) -> ReportSummary:
        """Totals for one window."""
        now = now or datetime.now()
        transactions = await self._storage.list_transactions(
            user_id,
            since=window_start(query_range, now),
        )
        return summarize(transactions, query_range, now)

    async def debts(self, user_id: str) -> list[DebtBalance]:
        """Outstanding balances across the whole ledger."""
        return debt_balances(await self._storage.list_transactions(user_id))

    async def outstanding_for(self, user_id: str, name: str) -> Decimal:
        """One person's balance, zero if they owe nothing."""
        name = (name or "").strip()
        for balance in await self.debts(user_id):
            if balance.name == name:
                return balance.balance
        return Decimal("0")

    async def build_settlement(
        self,
        user_id: str,
        name: str,
        date: Optional[datetime] = None,
    ) -> Transaction:
        """
        The DEBT_PAYMENT that clears a person's balance. Not saved here.

        Raises:
            ValueError: if the person owes nothing.
        """
        balance = await self.outstanding_for(user_id, name)
        return settle_debt(name, balance, date)
