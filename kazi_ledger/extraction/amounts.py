"""
Amount parsing.

Reads money figures the way owners type them:
- thousands separators: "300,000"
- unit shorthand: "50k", "1.5m", "2bn"
- currency marks on either side: "UGX 5000", "$50", "5000/=", "5000 shillings"

Negative figures and tokens that merely contain digits ("10kg", "2x", "3rd")
are not amounts.

When a sentence holds several figures, the choice between them is a
configurable policy (see AmountTieBreak). The default prefers the figure next
to a currency or money word and falls back to the largest. Whenever more
than one distinct figure was seen, the pick is flagged low confidence.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Sequence

from kazi_ledger.extraction.lexicon import (
    CURRENCY_WORDS,
    MONETARY_CUE_WORDS,
    UNIT_MULTIPLIERS,
)


AMOUNT_RE = re.compile(
    r"""
    (?<![\w.,:/\-])
    (?P<sign>[-−])?
    (?:(?P<prefix>[$€£₦₵]|(?i:ugx|kshs?|kes|tshs?|tzs|rwf|ngn|ghs|usd|eur|gbp|shs?))\.?\s?)?
    (?P<number>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)
    (?P<unit>(?i:bn|k|m))?
    (?P<suffix>/=|/-)?
    (?![\w:/%])
    """,
    re.VERBOSE,
)

_WORD_BEFORE_RE = re.compile(r"([A-Za-z]+)[^\w]*$")
_WORD_AFTER_RE = re.compile(r"^[^\w]*([A-Za-z]+)")


class AmountTieBreak(str, Enum):
    """How to choose between several figures in one sentence."""
    CUE_THEN_LARGEST = "cue_then_largest"
    LARGEST = "largest"


@dataclass(frozen=True)
class AmountCandidate:
    """One figure found in the text."""

    value: Decimal
    start: int
    end: int
    cued: bool = False
    negative: bool = False


@dataclass(frozen=True)
class AmountPick:
    """The chosen figure and whether the choice was a judgement call."""

    value: Optional[Decimal]
    low_confidence: bool = False


def _normalize(value: Decimal) -> Decimal:
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


def _is_cued(text: str, match: re.Match) -> bool:
    """Does a currency mark or money word sit right next to this figure?"""
    if match.group("prefix") or match.group("suffix"):
        return True

    before = _WORD_BEFORE_RE.search(text[: match.start()])
    if before:
        word = before.group(1).lower()
        if word in CURRENCY_WORDS or word in MONETARY_CUE_WORDS:
            return True

    after = _WORD_AFTER_RE.search(text[match.end():])
    if after and after.group(1).lower() in CURRENCY_WORDS:
        return True

    return False


def find_amount_candidates(text: str) -> list[AmountCandidate]:
    """
    Find every figure in the text, in order of appearance.

    Negative figures are returned with negative=True so callers can
    tell "no number" apart from "a number we refuse to use".
    """
    candidates = []
    for match in AMOUNT_RE.finditer(text or ""):
        try:
            value = Decimal(match.group("number").replace(",", ""))
        except InvalidOperation:
            continue

        unit = match.group("unit")
        if unit:
            value *= UNIT_MULTIPLIERS[unit.lower()]

        candidates.append(AmountCandidate(
            value=_normalize(value),
            start=match.start(),
            end=match.end(),
            cued=_is_cued(text, match),
            negative=bool(match.group("sign")),
        ))
    return candidates


def pick_amount(
    candidates: Sequence[AmountCandidate],
    tie_break: AmountTieBreak = AmountTieBreak.CUE_THEN_LARGEST,
) -> AmountPick:
    """
    Choose the transaction amount among the candidates.

    - Negative candidates are discarded.
    - One distinct value: that value, confident.
    - CUE_THEN_LARGEST: a single cued value wins, otherwise the largest
      (cued ones first) is taken. Either way the pick is flagged low
      confidence.
    - LARGEST: the largest value, flagged when there was a choice.
    """
    usable = [c for c in candidates if not c.negative]
    if not usable:
        return AmountPick(value=None)

    distinct = {c.value for c in usable}
    if len(distinct) == 1:
        return AmountPick(value=usable[0].value)

    if AmountTieBreak(tie_break) == AmountTieBreak.CUE_THEN_LARGEST:
        cued = {c.value for c in usable if c.cued}
        if len(cued) == 1:
            return AmountPick(value=next(iter(cued)), low_confidence=True)
        if cued:
            return AmountPick(value=max(cued), low_confidence=True)

    return AmountPick(value=max(distinct), low_confidence=True)


def parse_amount(
    value,
    tie_break: AmountTieBreak = AmountTieBreak.CUE_THEN_LARGEST,
) -> Optional[Decimal]:
    """
    Coerce a loosely-typed amount (number or printed string) to a Decimal.

    Returns None for negatives, booleans, and anything without a usable figure.

    Examples:
        >>> parse_amount("300,000")
        Decimal('300000')
        >>> parse_amount("50k")
        Decimal('50000')
        >>> parse_amount(-5) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
        if not number.is_finite() or number < 0:
            return None
        return _normalize(number)

    if isinstance(value, str):
        return pick_amount(find_amount_candidates(value), tie_break).value

    return None
