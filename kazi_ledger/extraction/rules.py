"""
Rule-Based Transaction Parser

Turns one short sentence into a ParseResult using keyword and position rules.

DESIGN DECISION: Type disambiguation follows a fixed precedence.
The first rule that matches wins:

1. Repayment ("paid back", "cleared", "settled", "<Name> paid") with a
   named party                                     → DEBT_PAYMENT
2. Owing ("owes", "on credit", "lent") with a named party → DEBT
3. Outflow ("paid", "bought", "spent")              → EXPENSE
4. Inflow ("sold", "received", "got paid")          → INCOME
5. A bare number with no verb                       → the caller's default
                                                      type, or UNKNOWN

CRITICAL: We never invent a counterparty. A debt phrase without a name
falls through to the next rule.

This parser is deterministic and keeps no state between calls.
"""

import re
from collections.abc import Mapping
from typing import List, Optional, Union

from kazi_ledger.extraction.amounts import (
    AmountPick,
    AmountTieBreak,
    find_amount_candidates,
    parse_amount,
    pick_amount,
)
from kazi_ledger.extraction.lexicon import (
    CATEGORY_KEYWORDS,
    DEBT_RE,
    GENERIC_NOUNS,
    INFLOW_RE,
    INFLOW_VERB_RE,
    KNOWN_WORDS,
    LEDGER_NOUN_RE,
    OBJECT_DEBT_VERBS,
    ON_CREDIT_RE,
    OUTFLOW_RE,
    OUTFLOW_VERB_RE,
    PARTY_PREPOSITIONS,
    PASSIVE_PAID_RE,
    PRONOUNS,
    QUERY_RE,
    RANGE_PHRASES,
    REPAYMENT_PHRASES,
    REPAYMENT_RE,
    SUBJECT_DEBT_VERBS,
    SUBJECT_REPAYMENT_VERBS,
    phrase_pattern,
)
from kazi_ledger.models.transaction import (
    DEFAULT_CATEGORY,
    Intent,
    ParseResult,
    QueryRange,
    ReceiptFields,
    TransactionType,
)


# =============================================================================
# PATTERNS
# =============================================================================

_NAME_TOKEN = r"[A-Z][a-zA-Z'’\-]*"
_NAME = rf"{_NAME_TOKEN}(?:[ \t]+{_NAME_TOKEN})*"
_LOWER_NAME = r"[a-z][a-z'’\-]*"
# "has cleared", "had paid"
_AUX = r"(?:(?i:has|had|have)\s+)?"


def _alternation(phrases) -> str:
    ordered = sorted(phrases, key=len, reverse=True)
    return "|".join(r"\s+".join(map(re.escape, p.split())) for p in ordered)


# "Musa paid back 5000", "Mama Rose settled 20k", "Okello has cleared 7000"
_SUBJECT_REPAYMENT_RE = re.compile(
    rf"(?P<name>{_NAME})\s+{_AUX}(?i:{_alternation(SUBJECT_REPAYMENT_VERBS)})(?![\w])"
)
# "musa paid back 5000" (lowercase subject, sentence start, explicit repayment only)
_LOWER_SUBJECT_REPAYMENT_RE = re.compile(
    rf"^\s*(?P<name>{_LOWER_NAME})\s+{_AUX}(?i:{_alternation(REPAYMENT_PHRASES)})(?![\w])"
)
# "Cleared Musa's debt", "settled by Musa", "settled with Okello"
_OBJECT_REPAYMENT_RE = re.compile(
    rf"(?i:{_alternation(REPAYMENT_PHRASES)})\s+(?:(?i:by|from|with)\s+)?(?P<name>{_NAME})"
)

# "Musa owes me 15000"
_SUBJECT_DEBT_RE = re.compile(
    rf"(?P<name>{_NAME})\s+{_AUX}(?i:{_alternation(SUBJECT_DEBT_VERBS)})(?![\w])"
)
_LOWER_SUBJECT_DEBT_RE = re.compile(
    rf"^\s*(?P<name>{_LOWER_NAME})\s+{_AUX}(?i:{_alternation(SUBJECT_DEBT_VERBS)})(?![\w])"
)
# "Lent Musa 5000", "gave Amina 3000 on credit"
_OBJECT_DEBT_RE = re.compile(
    rf"(?i:{_alternation(OBJECT_DEBT_VERBS)})\s+(?P<name>{_NAME})"
)

# "from John", "to Amina", "by Okello"
_SIDE_PARTY_RE = re.compile(
    rf"(?<![\w])(?i:{_alternation(PARTY_PREPOSITIONS)})\s+(?P<name>{_NAME})"
)
# "Paid John 5000"
_OUTFLOW_OBJECT_RE = re.compile(
    rf"(?<![\w])(?i:paid|pay)\s+(?P<name>{_NAME})"
)
# "Musa's"
_POSSESSIVE_RE = re.compile(rf"(?P<name>{_NAME})['’]s(?![\w])")
# The capitalized run a sentence opens with: "Musa" in "Musa took goods on credit"
_LEADING_NAME_RE = re.compile(rf"^\s*(?P<name>{_NAME})")

_CATEGORY_CUE_RE = re.compile(r"(?<![\w])(?i:category|cat)\s*[:=]\s*(?P<cat>[A-Za-z][A-Za-z &\-]{0,58})")
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'’\-]*")
_RECORD_VERB_RE = re.compile(
    "|".join(p.pattern for p in (REPAYMENT_RE, DEBT_RE, OUTFLOW_RE, INFLOW_RE)), re.IGNORECASE
)
_POSSESSIVE_SUFFIX_RE = re.compile(r"['’]s$")

_RANGE_PATTERNS = [(phrase_pattern([phrase]), QueryRange(value)) for phrase, value in RANGE_PHRASES]
_ANY_RANGE_RE = phrase_pattern([phrase for phrase, _ in RANGE_PHRASES])

_KEYWORD_TO_CATEGORY = {
    keyword: label
    for label, keywords in CATEGORY_KEYWORDS.items()
    for keyword in keywords
}

_NAME_PUNCTUATION = " \t\r\n.,!?;:\"'’()[]{}"


# =============================================================================
# HELPERS
# =============================================================================

def clean_name(candidate: Optional[str]) -> Optional[str]:
    """
    Trim a captured name to the words that can actually be a name.

    Whitespace, punctuation and possessive "'s" are removed, and words the
    parser itself understands ("Yesterday", "Paid", "I") are dropped from
    both ends.

    Returns None when nothing name-like is left.
    """
    if not candidate:
        return None

    words = []
    for word in candidate.split():
        word = _POSSESSIVE_SUFFIX_RE.sub("", word.strip(_NAME_PUNCTUATION))
        word = word.strip(_NAME_PUNCTUATION)
        if word:
            words.append(word)

    while words and words[0].lower() in KNOWN_WORDS:
        words.pop(0)
    while words and words[-1].lower() in KNOWN_WORDS:
        words.pop()

    if not words:
        return None
    return " ".join(words)


def _first_name(patterns, text: str) -> Optional[str]:
    for pattern in patterns:
        for match in pattern.finditer(text):
            name = clean_name(match.group("name"))
            if name:
                return name
    return None


def _lower_subject(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    word = match.group("name")
    if word in KNOWN_WORDS or word in PRONOUNS:
        return None
    return clean_name(word)


def find_query_range(text: str) -> Optional[QueryRange]:
    """Map the first temporal phrase in the text to a query range."""
    for pattern, query_range in _RANGE_PATTERNS:
        if pattern.search(text):
            return query_range
    return None


def strip_range_phrases(text: str) -> str:
    """Remove temporal phrases so "last 30 days" is not read as an amount."""
    return _ANY_RANGE_RE.sub(" ", text)


def coerce_transaction_type(value) -> Optional[TransactionType]:
    """Read a transaction type from loose input ("expense", "DEBT_PAYMENT")."""
    if isinstance(value, TransactionType):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return TransactionType(key)
    except ValueError:
        return None


# =============================================================================
# PARSER
# =============================================================================

class RuleBasedParser:
    """
    Deterministic keyword/position parser.

    RESPONSIBILITIES:
    - Classify intent (RECORD, QUERY, UNKNOWN)
    - Pick the transaction type by fixed precedence
    - Extract amount, counterparty, category and query range

    BOUNDARIES:
    - NEVER fabricates a counterparty
    - NEVER guesses a type for a bare number unless the caller supplies one
    - Holds only configuration; every call is independent
    """

    def __init__(
        self,
        tie_break: Union[AmountTieBreak, str] = AmountTieBreak.CUE_THEN_LARGEST,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self._tie_break = AmountTieBreak(tie_break)
        self._default_category = default_category

    @property
    def tie_break(self) -> AmountTieBreak:
        return self._tie_break

    def parse(
        self,
        text: str,
        default_type: Optional[TransactionType] = None,
    ) -> ParseResult:
        """
        Parse one utterance.

        Args:
            text: What the owner typed.
            default_type: Action supplied by surrounding context (a previous
                turn, a quick-action chip). Only used for a bare number.

        Returns:
            A ParseResult. raw_text is always the input, unchanged.
        """
        raw_text = text if isinstance(text, str) else ""
        sentence = raw_text.strip()
        if not sentence:
            return ParseResult.unknown(raw_text)

        query_range = find_query_range(sentence)
        body = strip_range_phrases(sentence)
        pick = pick_amount(find_amount_candidates(body), self._tie_break)

        outflow_body = PASSIVE_PAID_RE.sub(" ", body)
        has_repayment = bool(REPAYMENT_RE.search(body))
        has_debt = bool(DEBT_RE.search(body))
        has_outflow = bool(OUTFLOW_RE.search(outflow_body))
        has_inflow = bool(INFLOW_RE.search(body))
        has_record_verb = (
            has_repayment
            or has_debt
            or bool(OUTFLOW_VERB_RE.search(outflow_body))
            or bool(INFLOW_VERB_RE.search(body))
        )
        has_query_cue = bool(QUERY_RE.search(body)) or sentence.endswith("?")

        # Lookups first: asking about history never records anything.
        if has_query_cue and (pick.value is None or not has_record_verb):
            return ParseResult(intent=Intent.QUERY, query_range=query_range, raw_text=raw_text)
        if (
            pick.value is None
            and not has_record_verb
            and (query_range is not None or LEDGER_NOUN_RE.search(body))
        ):
            return ParseResult(intent=Intent.QUERY, query_range=query_range, raw_text=raw_text)

        tx_type, counterparty = self._classify(
            body,
            outflow_body,
            has_repayment=has_repayment,
            has_debt=has_debt,
            has_outflow=has_outflow,
            has_inflow=has_inflow,
        )

        if tx_type is None:
            if pick.value is None or default_type is None:
                return ParseResult.unknown(raw_text)
            tx_type = TransactionType(default_type)
            if tx_type.needs_counterparty:
                counterparty = self._side_party(body)
                if counterparty is None:
                    return ParseResult.unknown(raw_text)

        return ParseResult(
            intent=Intent.RECORD,
            type=tx_type,
            amount=pick.value,
            category=self._infer_category(body, counterparty)[:60],
            counterparty=counterparty[:120].rstrip() if counterparty else None,
            raw_text=raw_text,
            low_confidence=pick.low_confidence or pick.value == 0,
        )

    def parse_receipt_fields(
        self,
        fields: Union[ReceiptFields, Mapping],
        default_type: TransactionType = TransactionType.EXPENSE,
    ) -> ParseResult:
        """
        Build a RECORD from pre-extracted receipt fields.

        The merchant becomes the counterparty. A printed type wins over
        default_type when it names a valid transaction type.
        """
        if not isinstance(fields, ReceiptFields):
            fields = ReceiptFields.model_validate(dict(fields))

        merchant = clean_receipt_merchant(fields.merchant)
        raw_text = f"Receipt from {merchant or 'Unknown'}"

        tx_type = coerce_transaction_type(fields.type) or TransactionType(default_type)
        if tx_type.needs_counterparty and merchant is None:
            return ParseResult.unknown(raw_text)

        if isinstance(fields.amount, str):
            pick = pick_amount(find_amount_candidates(fields.amount), self._tie_break)
        else:
            pick = AmountPick(value=parse_amount(fields.amount))

        category = (fields.category or "").strip()
        if not category:
            category = self._keyword_category(
                " ".join(filter(None, [merchant, fields.raw_text]))
            ) or self._default_category

        return ParseResult(
            intent=Intent.RECORD,
            type=tx_type,
            amount=pick.value,
            category=category[:60],
            counterparty=merchant,
            raw_text=raw_text,
            low_confidence=pick.low_confidence or pick.value == 0,
        )

    # -------------------------------------------------------------------------
    # Type & counterparty
    # -------------------------------------------------------------------------

    def _classify(
        self,
        body: str,
        outflow_body: str,
        has_repayment: bool,
        has_debt: bool,
        has_outflow: bool,
        has_inflow: bool,
    ) -> tuple[Optional[TransactionType], Optional[str]]:
        """Apply the precedence rules. Returns (type, counterparty)."""
        party = self._repayment_party(body, has_repayment)
        if party:
            return TransactionType.DEBT_PAYMENT, party

        if has_debt:
            party = self._debt_party(body)
            if party:
                return TransactionType.DEBT, party

        if has_outflow:
            return TransactionType.EXPENSE, self._expense_party(outflow_body)

        if has_inflow:
            return TransactionType.INCOME, self._side_party(body)

        return None, None

    def _repayment_party(self, body: str, has_repayment: bool) -> Optional[str]:
        # A named subject paying is a repayment even without "back".
        name = _first_name([_SUBJECT_REPAYMENT_RE], body)
        if name or not has_repayment:
            return name
        return (
            _lower_subject(_LOWER_SUBJECT_REPAYMENT_RE, body)
            or _first_name([_OBJECT_REPAYMENT_RE, _POSSESSIVE_RE], body)
        )

    def _debt_party(self, body: str) -> Optional[str]:
        name = (
            _first_name([_SUBJECT_DEBT_RE], body)
            or _lower_subject(_LOWER_SUBJECT_DEBT_RE, body)
            or _first_name([_OBJECT_DEBT_RE, _POSSESSIVE_RE], body)
        )
        if name is None and ON_CREDIT_RE.search(body):
            # "Musa took goods on credit": the opening subject is the debtor
            name = self._side_party(body) or _first_name([_LEADING_NAME_RE], body)
        return name

    def _expense_party(self, body: str) -> Optional[str]:
        return _first_name([_SIDE_PARTY_RE, _OUTFLOW_OBJECT_RE], body)

    def _side_party(self, body: str) -> Optional[str]:
        return _first_name([_SIDE_PARTY_RE], body)

    # -------------------------------------------------------------------------
    # Category
    # -------------------------------------------------------------------------

    def _keyword_category(self, text: str) -> Optional[str]:
        for word in _WORD_RE.findall(text):
            label = _KEYWORD_TO_CATEGORY.get(word.lower())
            if label:
                return label
        return None

    def _item_words(self, body: str) -> List[str]:
        verb = _RECORD_VERB_RE.search(body)
        if verb is None:
            return _WORD_RE.findall(body)
        return _WORD_RE.findall(body[verb.end():]) + _WORD_RE.findall(body[:verb.start()])

    def _infer_category(self, body: str, counterparty: Optional[str]) -> str:
        """
        Explicit "category: X" cue, then the keyword table, then the first
        item noun, then the default.

        Item nouns are read after the record verb first, so the subject in
        "Amina sold tomatoes" is not taken for the item.
        """
        cue = _CATEGORY_CUE_RE.search(body)
        if cue:
            explicit = cue.group("cat").strip(" -&")
            if explicit:
                return explicit.title()

        keyword = self._keyword_category(body)
        if keyword:
            return keyword

        party_words = {w.lower() for w in (counterparty or "").split()}
        for word in self._item_words(body):
            lowered = _POSSESSIVE_SUFFIX_RE.sub("", word.lower()).strip("'’-")
            if len(lowered) < 2:
                continue
            if lowered in KNOWN_WORDS or lowered in GENERIC_NOUNS or lowered in party_words:
                continue
            return lowered.capitalize()

        return self._default_category


def clean_receipt_merchant(merchant: Optional[str]) -> Optional[str]:
    """Trim a merchant name; blank means unnamed."""
    if merchant is None:
        return None
    cleaned = merchant.strip(_NAME_PUNCTUATION)
    return cleaned[:120] or None
