"""
Onboarding demo ledger.

A week of plausible activity so a new owner sees non-empty reports
before typing anything.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from kazi_ledger.models.transaction import Transaction, TransactionType


# (days ago, type, amount, category, counterparty)
DEMO_ENTRIES = [
    (0, TransactionType.INCOME, 45000, "Sales", None),
    (0, TransactionType.EXPENSE, 12000, "Stock", None),
    (1, TransactionType.INCOME, 35000, "Sales", None),
    (1, TransactionType.EXPENSE, 8000, "Transport", None),
    (2, TransactionType.DEBT, 15000, "Credit", "Musa"),
    (5, TransactionType.EXPENSE, 200000, "Rent", None),
]


def generate_demo_transactions(now: Optional[datetime] = None) -> list[Transaction]:
    """Build the demo ledger relative to now, newest first."""
    now = now or datetime.now()
    return [
        Transaction(
            type=tx_type,
            amount=Decimal(amount),
            category=category,
            counterparty=counterparty,
            date=now - timedelta(days=days_ago),
        )
        for days_ago, tx_type, amount, category, counterparty in DEMO_ENTRIES
    ]
