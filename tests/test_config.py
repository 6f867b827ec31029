"""
Tests for configuration and the audit logger.

Environment variables are set per test with monkeypatch.
"""

import asyncio
from pathlib import Path
from uuid import uuid4

import pytest

from kazi_ledger.audit import AuditLogger, create_correlation_id
from kazi_ledger.config import AppSettings, ExtractorSettings, GeminiSettings, get_settings, validate_all_settings
from kazi_ledger.models import AuditEventBuilder, AuditEventType, ParseResult
from kazi_ledger.services.storage import InMemoryAuditStorage


class TestSettings:
    """Tests for environment-driven settings."""

    def test_gemini_from_env(self, monkeypatch):
        """Test GEMINI_ variables are read."""
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        monkeypatch.setenv("GEMINI_MODEL_NAME", "gemini-test")
        settings = GeminiSettings()
        assert settings.api_key == "test-key"
        assert settings.model_name == "gemini-test"

    def test_extractor_defaults(self, monkeypatch):
        """Test the rule-based backend is the default."""
        monkeypatch.delenv("EXTRACTOR_BACKEND", raising=False)
        settings = ExtractorSettings()
        assert settings.backend == "rules"
        assert settings.timeout_seconds is None

    def test_extractor_rejects_unknown_backend(self):
        """Test only known backends are accepted."""
        with pytest.raises(ValueError):
            ExtractorSettings(backend="telepathy")

    def test_app_settings(self, monkeypatch, tmp_path):
        """Test currency normalization and the data path."""
        monkeypatch.setenv("DEFAULT_CURRENCY", "kes")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        settings = AppSettings()
        assert settings.default_currency == "KES"
        assert settings.data_path == Path(tmp_path)

    def test_validate_all_reports_missing_key(self, monkeypatch):
        """Test a missing Gemini key is reported, not raised."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.chdir(Path(__file__).parent)
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["extractor"] is True
        assert results["app"] is True
        assert results["gemini"] is False
        assert "gemini_error" in results


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise OSError("read-only filesystem")


class TestAuditLogger:
    """Tests for the audit logger."""

    def test_extraction_events(self):
        """Test each intent is logged as its own event type."""
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)
        correlation_id = create_correlation_id()

        asyncio.run(audit.log_extraction(ParseResult.unknown("asdf"), correlation_id))
        asyncio.run(audit.log_extraction(
            ParseResult(intent="QUERY", query_range="today"), correlation_id,
        ))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [
            AuditEventType.INPUT_NOT_UNDERSTOOD,
            AuditEventType.QUERY_RECOGNIZED,
        ]

    def test_storage_failure_does_not_raise(self):
        """Test a broken audit store never breaks the caller."""
        audit = AuditLogger(FailingAuditStorage())
        ok = asyncio.run(audit.log_error("TestError", "boom", correlation_id=uuid4()))
        assert ok is None

    def test_log_returns_false_on_failure(self):
        """Test log() reports the failed write."""
        audit = AuditLogger(FailingAuditStorage())
        event = AuditEventBuilder.system_error("TestError", "boom")
        assert asyncio.run(audit.log(event)) is False

    def test_without_storage(self):
        """Test local-only logging succeeds."""
        event = AuditEventBuilder.system_error("TestError", "boom")
        assert asyncio.run(AuditLogger().log(event)) is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
