"""Confirmation validation package."""

from kazi_ledger.validation.validator import (
    ParseResultValidator,
    get_user_friendly_summary,
)

__all__ = ["ParseResultValidator", "get_user_friendly_summary"]
