"""
Report aggregation.

Plain arithmetic over an already-structured transaction list:
- inflow is INCOME + DEBT_PAYMENT
- outflow is EXPENSE
- DEBT moves no cash, so it counts toward neither

Windows are relative to "now": today starts at local midnight, a week is
the last 7 days and a month the last 30 days.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from kazi_ledger.models.transaction import (
    DebtBalance,
    QueryRange,
    ReportSummary,
    Transaction,
    TransactionType,
)


SETTLEMENT_CATEGORY = "Settlement"

_WINDOW_DAYS = {
    QueryRange.WEEK: 7,
    QueryRange.MONTH: 30,
}


def window_start(query_range: QueryRange, now: Optional[datetime] = None) -> datetime:
    """First moment included in a report window."""
    now = now or datetime.now()
    query_range = QueryRange(query_range)
    if query_range == QueryRange.TODAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    return now - timedelta(days=_WINDOW_DAYS[query_range])


def summarize(
    transactions: Iterable[Transaction],
    query_range: QueryRange,
    now: Optional[datetime] = None,
) -> ReportSummary:
    """Total inflow and outflow for the window, newest entries first."""
    now = now or datetime.now()
    start = window_start(query_range, now)

    in_window = sorted(
        (tx for tx in transactions if tx.date >= start),
        key=lambda tx: tx.date,
        reverse=True,
    )
    total_in = sum((tx.amount for tx in in_window if tx.is_inflow), Decimal("0"))
    total_out = sum((tx.amount for tx in in_window if tx.is_outflow), Decimal("0"))

    return ReportSummary(
        period=QueryRange(query_range),
        window_start=start,
        generated_at=now,
        total_in=total_in,
        total_out=total_out,
        transactions=in_window,
    )


def debt_balances(transactions: Iterable[Transaction]) -> list[DebtBalance]:
    """
    What each person still owes.

    DEBT adds to a name, DEBT_PAYMENT subtracts. Names are matched after
    trimming. Only positive balances are returned, largest first.
    """
    balances: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.type not in (TransactionType.DEBT, TransactionType.DEBT_PAYMENT):
            continue
        name = (tx.counterparty or "").strip()
        if not name:
            continue
        delta = tx.amount if tx.type == TransactionType.DEBT else -tx.amount
        balances[name] = balances.get(name, Decimal("0")) + delta

    owed = [
        DebtBalance(name=name, balance=balance)
        for name, balance in balances.items()
        if balance > 0
    ]
    owed.sort(key=lambda d: (-d.balance, d.name))
    return owed


def total_outstanding(balances: Iterable[DebtBalance]) -> Decimal:
    return sum((b.balance for b in balances), Decimal("0"))


def settle_debt(
    name: str,
    balance: Decimal,
    date: Optional[datetime] = None,
) -> Transaction:
    """
    The repayment that clears someone's whole balance.

    Raises:
        ValueError: if the name is blank or the balance is not positive.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("A name is required to settle a debt")
    balance = Decimal(balance)
    if balance <= 0:
        raise ValueError(f"{name} has nothing outstanding")

    return Transaction(
        type=TransactionType.DEBT_PAYMENT,
        amount=balance,
        category=SETTLEMENT_CATEGORY,
        counterparty=name,
        date=date or datetime.now(),
    )
