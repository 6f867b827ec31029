"""
Structured-response coercion.

Whatever a backend hands back (a dict from the rule parser, or JSON text
from a language model) is validated here before it becomes a ParseResult.

CRITICAL: Nothing in this module raises to the caller. An invalid enum value,
a non-numeric or negative amount, or malformed JSON all collapse to an
UNKNOWN result carrying the original text.
"""

import json
import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kazi_ledger.extraction.amounts import parse_amount
from kazi_ledger.models.transaction import (
    Intent,
    ParseResult,
    QueryRange,
    ReceiptFields,
    TransactionType,
)


logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)
_TEXT_PUNCTUATION = " \t\r\n.,!?;:\"'()[]{}"


class InferencePayload(BaseModel):
    """
    The field set a backend is allowed to return.

    Accepts both snake_case and the camelCase used in model responses
    (queryRange, rawText).
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    intent: Intent
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    counterparty: Optional[str] = None
    query_range: Optional[QueryRange] = Field(default=None, alias="queryRange")

    @field_validator("intent", "type", mode="before")
    @classmethod
    def upper_enum(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper() or None
        return v

    @field_validator("query_range", mode="before")
    @classmethod
    def lower_range(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def numeric_amount(cls, v: Any) -> Any:
        """Numbers and numeric strings only; negatives are rejected."""
        if v is None:
            return None
        if isinstance(v, bool):
            raise ValueError("amount must be a number")
        if isinstance(v, str):
            v = v.strip().replace(",", "")
            if not v:
                return None
        try:
            value = Decimal(str(v))
        except ArithmeticError:
            raise ValueError(f"amount is not numeric: {v!r}")
        if not value.is_finite() or value < 0:
            raise ValueError(f"amount must be a non-negative number: {v!r}")
        return value

    @field_validator("category", "counterparty", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip(_TEXT_PUNCTUATION) or None
        return v


def load_json_object(text: str) -> dict:
    """
    Pull the JSON object out of a model response.

    Markdown code fences are stripped, then the outermost {...} is parsed.

    Raises:
        ValueError: if there is no JSON object in the text.
    """
    cleaned = _FENCE_RE.sub("", text or "")
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in response")

    data = json.loads(cleaned[start:end])
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


def receipt_fields_from_payload(payload: Any) -> ReceiptFields:
    """
    Read receipt fields out of a backend response.

    Model responses name the merchant "counterparty"; both spellings work.

    Raises:
        ValueError: on malformed JSON or field values (ValidationError is a
                    ValueError).
    """
    if isinstance(payload, ReceiptFields):
        return payload
    if isinstance(payload, (str, bytes)):
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        data = load_json_object(payload)
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(f"Unsupported payload type: {type(payload).__name__}")

    if not data.get("merchant") and data.get("counterparty"):
        data["merchant"] = data["counterparty"]
    if "raw_text" not in data and "rawText" in data:
        data["raw_text"] = data["rawText"]
    return ReceiptFields.model_validate(data)


def coerce_payload(payload: Any, raw_text: str) -> ParseResult:
    """
    Validate a backend response and shape it into a ParseResult.

    Fields that do not belong to the coerced intent are dropped, so a QUERY
    only ever carries query_range. A debt record without a named party is
    not a usable record and becomes UNKNOWN.
    """
    try:
        if isinstance(payload, ParseResult):
            return payload
        if isinstance(payload, (str, bytes)):
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            data = load_json_object(payload)
        elif isinstance(payload, Mapping):
            data = dict(payload)
        else:
            raise ValueError(f"Unsupported payload type: {type(payload).__name__}")

        parsed = InferencePayload.model_validate(data)
    except (ValueError, ValidationError) as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
        logger.warning("payload_rejected", error=str(e)[:200])
        return ParseResult.unknown(raw_text)

    if parsed.intent == Intent.UNKNOWN:
        return ParseResult.unknown(raw_text)

    if parsed.intent == Intent.QUERY:
        return ParseResult(
            intent=Intent.QUERY,
            query_range=parsed.query_range,
            raw_text=raw_text,
        )

    if parsed.type is not None and parsed.type.needs_counterparty and not parsed.counterparty:
        logger.info("debt_without_counterparty", type=parsed.type.value)
        return ParseResult.unknown(raw_text)

    amount = parse_amount(parsed.amount)
    return ParseResult(
        intent=Intent.RECORD,
        type=parsed.type,
        amount=amount,
        category=parsed.category[:60] if parsed.category else None,
        counterparty=parsed.counterparty[:120] if parsed.counterparty else None,
        raw_text=raw_text,
        low_confidence=amount == 0,
    )
