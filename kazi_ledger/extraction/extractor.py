"""
Intent & Field Extractor

The single entry point that turns what the owner typed (or a scanned
receipt) into a ParseResult.

CRITICAL CONTRACT:
1. NEVER raises to the caller. Backend failures, malformed output and
   timeouts all come back as UNKNOWN with the original text.
2. NEVER persists anything and reads no stored state.
3. NEVER retries. One call is one backend round trip.

The backend is injected through ExtractorConfig. There is no module-level
client or API key.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

import structlog

from kazi_ledger.config import ExtractorSettings, GeminiSettings, get_settings
from kazi_ledger.extraction.amounts import AmountTieBreak
from kazi_ledger.extraction.backends import InferenceBackend, RuleBasedBackend
from kazi_ledger.extraction.rules import RuleBasedParser
from kazi_ledger.extraction.schema import coerce_payload, receipt_fields_from_payload
from kazi_ledger.models.transaction import (
    ParseResult,
    ReceiptFields,
    ReceiptImage,
    TransactionType,
)


logger = structlog.get_logger(__name__)

RECEIPT_SCAN_FAILED = "Failed to scan receipt"


@dataclass
class ExtractorConfig:
    """
    Everything the extractor needs, passed in at construction time.

    Attributes:
        backend: The inference mechanism for free text and receipt images.
        timeout_seconds: Give up on the backend after this long. None waits.
        fields_parser: Reads pre-extracted receipt fields. Always rule-based,
            since the fields are already structured.
    """

    backend: Optional[InferenceBackend] = field(default_factory=RuleBasedBackend)
    timeout_seconds: Optional[float] = None
    fields_parser: RuleBasedParser = field(default_factory=RuleBasedParser)


class TransactionExtractor:
    """
    Side-effect-free extractor facade.

    Safe to share: it holds only its configuration, so concurrent calls for
    different input surfaces do not interfere.
    """

    def __init__(self, config: Optional[ExtractorConfig] = None):
        self._config = config or ExtractorConfig()

    @property
    def config(self) -> ExtractorConfig:
        return self._config

    @property
    def backend_name(self) -> str:
        backend = self._config.backend
        return backend.name if backend is not None else "none"

    async def extract(
        self,
        text: str,
        default_type: Optional[TransactionType] = None,
    ) -> ParseResult:
        """
        Classify one utterance.

        Args:
            text: The owner's sentence.
            default_type: Action supplied by context (previous turn,
                quick-action chip), used only for a bare number.
        """
        raw_text = text if isinstance(text, str) else ""

        async def call() -> ParseResult:
            payload = await self._require_backend().parse_text(raw_text, default_type)
            return coerce_payload(payload, raw_text)

        return await self._guarded(call, fallback_text=raw_text, operation="text")

    async def extract_from_receipt_fields(
        self,
        fields: Union[ReceiptFields, Mapping],
        default_type: TransactionType = TransactionType.EXPENSE,
    ) -> ParseResult:
        """Build a RECORD from pre-OCR'd receipt fields (merchant → counterparty)."""

        async def call() -> ParseResult:
            return self._config.fields_parser.parse_receipt_fields(fields, default_type)

        return await self._guarded(call, fallback_text=RECEIPT_SCAN_FAILED, operation="receipt_fields")

    async def extract_from_receipt_image(
        self,
        image: ReceiptImage,
        default_type: TransactionType = TransactionType.EXPENSE,
    ) -> ParseResult:
        """
        Send receipt bytes to the backend and read the fields it returns.

        A backend that cannot see images degrades to UNKNOWN like any other
        failure.
        """

        async def call() -> ParseResult:
            payload = await self._require_backend().parse_receipt_image(image)
            fields = receipt_fields_from_payload(payload)
            return self._config.fields_parser.parse_receipt_fields(fields, default_type)

        return await self._guarded(call, fallback_text=RECEIPT_SCAN_FAILED, operation="receipt_image")

    def _require_backend(self) -> InferenceBackend:
        if self._config.backend is None:
            raise RuntimeError("No inference backend configured")
        return self._config.backend

    async def _guarded(
        self,
        call: Callable[[], Awaitable[ParseResult]],
        fallback_text: str,
        operation: str,
    ) -> ParseResult:
        """Run one extraction; any failure becomes UNKNOWN."""
        try:
            if self._config.timeout_seconds is not None:
                return await asyncio.wait_for(call(), timeout=self._config.timeout_seconds)
            return await call()
        except Exception as e:
            # asyncio.TimeoutError lands here too.
            logger.warning(
                "extraction_degraded",
                backend=self.backend_name,
                operation=operation,
                error_type=type(e).__name__,
                error=str(e)[:200],
            )
            return ParseResult.unknown(fallback_text)


def create_extractor(
    extractor_settings: Optional[ExtractorSettings] = None,
    gemini_settings: Optional[GeminiSettings] = None,
    backend: Optional[InferenceBackend] = None,
) -> TransactionExtractor:
    """
    Build an extractor from settings.

    The Gemini backend is only constructed (and only needs an API key) when
    EXTRACTOR_BACKEND=gemini. An explicit backend wins over settings.
    """
    settings = extractor_settings or get_settings().extractor
    tie_break = AmountTieBreak(settings.amount_tie_break)
    fields_parser = RuleBasedParser(
        tie_break=tie_break,
        default_category=settings.default_category,
    )

    if backend is None:
        if settings.backend == "gemini":
            # Imported here so the rule-based setup never loads the SDK.
            from kazi_ledger.agents.gemini_backend import GeminiBackend

            backend = GeminiBackend(settings=gemini_settings or get_settings().gemini)
        else:
            backend = RuleBasedBackend(parser=fields_parser)

    return TransactionExtractor(ExtractorConfig(
        backend=backend,
        timeout_seconds=settings.timeout_seconds,
        fields_parser=fields_parser,
    ))
