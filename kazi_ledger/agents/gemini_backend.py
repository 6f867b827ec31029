"""
Gemini Inference Backend

DESIGN DECISION: The language model is an optional reader, never the source
of truth. The rule-based backend is the default; this one is switched on
with EXTRACTOR_BACKEND=gemini.

CRITICAL BOUNDARIES:

1. TEXT:
   - CAN: Classify intent and pull type, amount, category, counterparty
   - CANNOT: Invent a counterparty that is not named in the text
   - CANNOT: Persist anything. Its answer is only a proposal

2. RECEIPT IMAGES:
   - CAN: Read merchant, total and category off the image
   - MUST: Default to EXPENSE, since that is what receipts usually are

Every response is validated by the extractor before anyone sees it.
This module does not retry and does not catch errors: a failed call
is the extractor's to degrade.
"""

from typing import Any, Optional

import google.generativeai as genai
import structlog

from kazi_ledger.config import GeminiSettings, get_settings
from kazi_ledger.extraction.backends import InferenceBackend
from kazi_ledger.models.transaction import ReceiptImage, TransactionType


logger = structlog.get_logger(__name__)


TEXT_INSTRUCTION = """You are an accounting assistant for a small business owner.
Classify what the user typed and extract the transaction details.

Intents:
- RECORD: the user is telling you about money that moved ("Sold bread 5000").
- QUERY: the user is asking about past activity ("How much did I sell today?").
- UNKNOWN: anything else.

Transaction types, first match wins:
- DEBT_PAYMENT: someone paid back money they owed ("Musa paid back 5000",
  "Musa paid 500"). counterparty is that person.
- DEBT: someone owes the business ("Musa owes me 15000", "gave Amina 3000
  on credit"). counterparty is that person.
- EXPENSE: money going out ("Paid rent 300000", "Bought fuel 20k").
- INCOME: money coming in ("Sold bread 5000", "Received 10000").

Rules:
- amount is a plain number. "50k" is 50000 and "300,000" is 300000.
- Never invent a counterparty. Leave it null unless a name is in the text.
- category is a short label such as Sales, Rent, Stock, Fuel or General.
- queryRange is "today", "week" or "month" for QUERY, otherwise null.
- A bare number with no verb is UNKNOWN."""


RECEIPT_INSTRUCTION = """You are reading a photo of a receipt for a small business ledger.
Extract the merchant name, the total amount paid and a short category.
Usually receipts are EXPENSES (the business bought something).
Only use INCOME if the receipt clearly shows the business selling.
Default to EXPENSE."""


TEXT_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "intent": {"type": "string", "enum": ["RECORD", "QUERY", "UNKNOWN"]},
        "type": {
            "type": "string",
            "enum": [t.value for t in TransactionType],
            "nullable": True,
        },
        "amount": {"type": "number", "nullable": True},
        "category": {"type": "string", "nullable": True},
        "counterparty": {"type": "string", "nullable": True},
        "queryRange": {
            "type": "string",
            "enum": ["today", "week", "month"],
            "nullable": True,
        },
    },
    "required": ["intent"],
}


RECEIPT_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {
            "type": "string",
            "enum": [TransactionType.EXPENSE.value, TransactionType.INCOME.value],
        },
        "amount": {"type": "number"},
        "category": {"type": "string"},
        "counterparty": {"type": "string", "nullable": True},
    },
    "required": ["type", "amount"],
}


class GeminiBackend(InferenceBackend):
    """
    Inference backend backed by Google Gemini.

    RESPONSIBILITIES:
    - One generate_content call per input, JSON constrained by schema
    - Inline receipt bytes with their media type

    BOUNDARIES:
    - NEVER retries
    - NEVER swallows an error; the extractor decides what a failure means
    """

    name = "gemini"

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
    ):
        """
        Args:
            settings: Gemini configuration. Loaded from the environment if
                      omitted.
            model: A ready GenerativeModel-like object with
                   generate_content_async. Skips SDK configuration.
        """
        self._settings = settings
        self._model = model
        if self._model is None:
            self._settings = settings or get_settings().gemini
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(model_name=self._settings.model_name)

    def _generation_config(self, schema: dict) -> dict:
        settings = self._settings
        return {
            "temperature": settings.temperature if settings else 0.1,
            "max_output_tokens": settings.max_tokens if settings else 512,
            "response_mime_type": "application/json",
            "response_schema": schema,
        }

    async def parse_text(
        self,
        text: str,
        default_type: Optional[TransactionType] = None,
    ) -> str:
        """Ask Gemini to classify one utterance. Returns the raw JSON text."""
        prompt = f'{TEXT_INSTRUCTION}\n\nUser input: "{text}"'
        if default_type is not None:
            prompt += (
                f"\nIf the input is just a number, treat it as "
                f"{TransactionType(default_type).value}."
            )

        response = await self._model.generate_content_async(
            prompt,
            generation_config=self._generation_config(TEXT_RESPONSE_SCHEMA),
        )
        logger.debug("gemini_text_response", length=len(response.text or ""))
        return response.text

    async def parse_receipt_image(self, image: ReceiptImage) -> str:
        """Send the receipt bytes inline. Returns the raw JSON text."""
        response = await self._model.generate_content_async(
            [
                {"mime_type": image.mime_type, "data": image.data},
                RECEIPT_INSTRUCTION,
            ],
            generation_config=self._generation_config(RECEIPT_RESPONSE_SCHEMA),
        )
        logger.debug(
            "gemini_receipt_response",
            mime_type=image.mime_type,
            size=len(image.data),
        )
        return response.text
