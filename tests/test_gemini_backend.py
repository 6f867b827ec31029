"""
Tests for the Gemini backend.

A fake model stands in for genai.GenerativeModel, so no API key or
network is needed.
"""

import asyncio
from decimal import Decimal

import pytest

from kazi_ledger.agents import RECEIPT_RESPONSE_SCHEMA, TEXT_RESPONSE_SCHEMA, GeminiBackend
from kazi_ledger.config import GeminiSettings
from kazi_ledger.extraction import ExtractorConfig, TransactionExtractor
from kazi_ledger.models import Intent, ParseResult, ReceiptImage, TransactionType


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Records every generate_content_async call."""

    def __init__(self, text=None, error=None):
        self._text = text
        self._error = error
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append((contents, generation_config))
        if self._error:
            raise self._error
        return FakeResponse(self._text)


class TestGeminiText:
    """Tests for free-text calls."""

    def test_request_shape(self):
        """Test the prompt carries the input and the JSON schema."""
        model = FakeModel('{"intent":"RECORD","type":"INCOME","amount":5000,"category":"Bread"}')
        backend = GeminiBackend(model=model)

        text = asyncio.run(backend.parse_text("Sold bread 5000"))

        assert "intent" in text
        prompt, config = model.calls[0]
        assert 'User input: "Sold bread 5000"' in prompt
        assert config["response_mime_type"] == "application/json"
        assert config["response_schema"] is TEXT_RESPONSE_SCHEMA

    def test_default_type_hint(self):
        """Test the context type is mentioned for bare numbers."""
        model = FakeModel('{"intent":"RECORD","type":"EXPENSE","amount":5000}')
        backend = GeminiBackend(model=model)

        asyncio.run(backend.parse_text("5000", TransactionType.EXPENSE))

        prompt, _ = model.calls[0]
        assert "treat it as EXPENSE" in prompt

    def test_settings_drive_generation_config(self):
        """Test temperature and token limits come from settings."""
        settings = GeminiSettings(api_key="test-key", temperature=0.3, max_tokens=256)
        model = FakeModel('{"intent":"UNKNOWN"}')
        backend = GeminiBackend(settings=settings, model=model)

        asyncio.run(backend.parse_text("hello"))

        _, config = model.calls[0]
        assert config["temperature"] == 0.3
        assert config["max_output_tokens"] == 256

    def test_through_extractor(self):
        """Test the extractor coerces the model's JSON."""
        model = FakeModel('{"intent":"RECORD","type":"DEBT_PAYMENT","amount":5000,"counterparty":"Musa"}')
        extractor = TransactionExtractor(ExtractorConfig(backend=GeminiBackend(model=model)))

        result = asyncio.run(extractor.extract("Musa paid back 5000"))

        assert result.type == TransactionType.DEBT_PAYMENT
        assert result.amount == Decimal("5000")
        assert result.counterparty == "Musa"

    def test_model_error_degrades(self):
        """Test an SDK error becomes UNKNOWN in the extractor."""
        model = FakeModel(error=RuntimeError("quota exceeded"))
        extractor = TransactionExtractor(ExtractorConfig(backend=GeminiBackend(model=model)))

        result = asyncio.run(extractor.extract("Sold bread 5000"))

        assert result == ParseResult.unknown("Sold bread 5000")


class TestGeminiReceipt:
    """Tests for receipt image calls."""

    def test_image_sent_inline(self):
        """Test the bytes and media type are sent with the instruction."""
        model = FakeModel('{"type":"EXPENSE","amount":45000,"category":"Fuel","counterparty":"Shell"}')
        backend = GeminiBackend(model=model)
        image = ReceiptImage(data=b"\x89PNG", mime_type="image/png")

        asyncio.run(backend.parse_receipt_image(image))

        contents, config = model.calls[0]
        assert contents[0] == {"mime_type": "image/png", "data": b"\x89PNG"}
        assert "Default to EXPENSE" in contents[1]
        assert config["response_schema"] is RECEIPT_RESPONSE_SCHEMA

    def test_receipt_through_extractor(self):
        """Test a receipt response becomes an EXPENSE record."""
        model = FakeModel('{"type":"EXPENSE","amount":45000,"category":"Fuel","counterparty":"Shell"}')
        extractor = TransactionExtractor(ExtractorConfig(backend=GeminiBackend(model=model)))
        image = ReceiptImage(data=b"\xff\xd8", mime_type="image/jpeg")

        result = asyncio.run(extractor.extract_from_receipt_image(image))

        assert result.intent == Intent.RECORD
        assert result.type == TransactionType.EXPENSE
        assert result.category == "Fuel"
        assert result.counterparty == "Shell"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
