"""
Inference backends.

A backend turns raw input into a payload the extractor can coerce: a
ParseResult, a dict, or JSON text. The extractor owns coercion, timeouts
and failure handling, so backends are free to raise.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from kazi_ledger.extraction.amounts import AmountTieBreak
from kazi_ledger.extraction.rules import RuleBasedParser
from kazi_ledger.models.transaction import (
    DEFAULT_CATEGORY,
    ReceiptImage,
    TransactionType,
)


class InferenceBackend(ABC):
    """
    Abstract interface for anything that can read a sentence.

    One call is one round trip. Backends MUST NOT retry on their own.
    """

    name: str = "backend"

    @abstractmethod
    async def parse_text(
        self,
        text: str,
        default_type: Optional[TransactionType] = None,
    ) -> Any:
        """Read one utterance. Returns a payload for coerce_payload."""
        pass

    async def parse_receipt_image(self, image: ReceiptImage) -> Any:
        """
        Read a receipt image. Returns receipt fields (amount, merchant,
        category, type).

        Raises:
            NotImplementedError: if the backend cannot see images.
        """
        raise NotImplementedError(f"{self.name} backend cannot read receipt images")


class RuleBasedBackend(InferenceBackend):
    """
    Deterministic keyword backend. The default.

    Wraps RuleBasedParser; no I/O, so results are identical for identical
    input.
    """

    name = "rules"

    def __init__(
        self,
        parser: Optional[RuleBasedParser] = None,
        tie_break: AmountTieBreak = AmountTieBreak.CUE_THEN_LARGEST,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self._parser = parser or RuleBasedParser(
            tie_break=tie_break,
            default_category=default_category,
        )

    @property
    def parser(self) -> RuleBasedParser:
        return self._parser

    async def parse_text(
        self,
        text: str,
        default_type: Optional[TransactionType] = None,
    ) -> Any:
        return self._parser.parse(text, default_type=default_type)
