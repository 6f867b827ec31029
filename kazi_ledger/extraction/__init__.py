"""
Intent & field extraction package.

Text or receipt in, ParseResult out. Nothing here persists data.
"""

from kazi_ledger.extraction.amounts import (
    AmountTieBreak,
    find_amount_candidates,
    parse_amount,
    pick_amount,
)
from kazi_ledger.extraction.backends import InferenceBackend, RuleBasedBackend
from kazi_ledger.extraction.extractor import (
    ExtractorConfig,
    TransactionExtractor,
    create_extractor,
)
from kazi_ledger.extraction.rules import RuleBasedParser
from kazi_ledger.extraction.schema import coerce_payload, receipt_fields_from_payload

__all__ = [
    "AmountTieBreak",
    "ExtractorConfig",
    "InferenceBackend",
    "RuleBasedBackend",
    "RuleBasedParser",
    "TransactionExtractor",
    "coerce_payload",
    "create_extractor",
    "find_amount_candidates",
    "parse_amount",
    "pick_amount",
    "receipt_fields_from_payload",
]
