"""Shared fixtures. No test talks to the network."""

from datetime import datetime
from decimal import Decimal

import pytest

from kazi_ledger.extraction import RuleBasedParser, TransactionExtractor
from kazi_ledger.models import BusinessProfile, Transaction
from kazi_ledger.services.storage import InMemoryAuditStorage, InMemoryTransactionStorage
from kazi_ledger.validation import ParseResultValidator


@pytest.fixture
def parser():
    return RuleBasedParser()


@pytest.fixture
def extractor():
    return TransactionExtractor()


@pytest.fixture
def profile():
    return BusinessProfile(id="owner-1", email="owner@example.com")


@pytest.fixture
def storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def validator():
    return ParseResultValidator(max_transaction_amount=Decimal("100000000"))


@pytest.fixture
def now():
    return datetime(2026, 3, 14, 15, 30)


def make_tx(tx_type, amount, when, counterparty=None, category="General"):
    return Transaction(
        type=tx_type,
        amount=Decimal(amount),
        category=category,
        counterparty=counterparty,
        date=when,
    )


@pytest.fixture
def tx_factory():
    return make_tx
