"""Language-model inference backends."""

from kazi_ledger.agents.gemini_backend import (
    RECEIPT_RESPONSE_SCHEMA,
    TEXT_RESPONSE_SCHEMA,
    GeminiBackend,
)

__all__ = [
    "GeminiBackend",
    "RECEIPT_RESPONSE_SCHEMA",
    "TEXT_RESPONSE_SCHEMA",
]
