"""
Word lists for the rule-based extractor.

DESIGN DECISION: We use plain keyword tables rather than an NLP pipeline because:
1. The owner can see why a sentence was read the way it was
2. Results are deterministic and easy to test
3. The owner confirms every record anyway

All entries are lowercase. Phrases are matched on word boundaries.
"""

import re


def phrase_pattern(phrases) -> re.Pattern:
    """Compile a case-insensitive, word-bounded alternation of phrases."""
    ordered = sorted(phrases, key=len, reverse=True)
    body = "|".join(r"\s+".join(map(re.escape, p.split())) for p in ordered)
    return re.compile(rf"(?<![\w'])(?:{body})(?![\w])", re.IGNORECASE)


# =============================================================================
# TRANSACTION CUES
# =============================================================================

# A debt being repaid. Needs a named party to count.
REPAYMENT_PHRASES = (
    "paid back",
    "pay back",
    "paying back",
    "has paid back",
    "repaid",
    "repays",
    "cleared",
    "clears",
    "settled",
    "settles",
    "paid off",
)

# Someone owing the business. Needs a named party to count.
DEBT_PHRASES = (
    "owes",
    "owe",
    "owed",
    "owing",
    "on credit",
    "on loan",
    "borrowed",
    "lent",
    "loaned",
)

# Money leaving the business.
OUTFLOW_VERBS = (
    "paid",
    "pay",
    "paying",
    "bought",
    "buy",
    "buying",
    "spent",
    "spend",
    "purchased",
    "purchase",
)

# Money coming in. "got paid" is listed so it can mask the outflow "paid".
INFLOW_VERBS = (
    "sold",
    "sell",
    "selling",
    "received",
    "receive",
    "got paid",
    "get paid",
    "was paid",
    "been paid",
    "earned",
    "collected",
    "made",
)

# Nouns that mark a type only when an amount is present ("Sales 5000").
OUTFLOW_NOUNS = ("expense",)
INFLOW_NOUNS = ("sale", "sales", "income")

OUTFLOW_PHRASES = OUTFLOW_VERBS + OUTFLOW_NOUNS
INFLOW_PHRASES = INFLOW_VERBS + INFLOW_NOUNS

PASSIVE_PAID_PHRASES = ("got paid", "get paid", "was paid", "been paid")

# Verbs where a capitalized subject means a third party paid the business.
SUBJECT_REPAYMENT_VERBS = ("paid back", "has paid back", "repaid", "paid", "cleared", "settled", "paid off")

# Verbs where a capitalized subject is the debtor.
SUBJECT_DEBT_VERBS = ("owes", "owe", "owed", "borrowed", "took on credit")

# Verbs whose object is the debtor ("lent Musa 5000").
OBJECT_DEBT_VERBS = ("lent", "loaned", "gave", "credit to", "on credit to")

# Prepositions that introduce the other side of a sale or purchase.
PARTY_PREPOSITIONS = ("from", "to", "by", "with")


# =============================================================================
# QUERY CUES
# =============================================================================

QUERY_PHRASES = (
    "how much",
    "how many",
    "what",
    "what's",
    "whats",
    "show",
    "show me",
    "list",
    "view",
    "display",
    "report",
    "summary",
    "summarize",
    "total",
    "totals",
    "balance",
    "did i",
    "have i",
    "give me",
    "check",
)

# Nouns that on their own, next to a time range, make a lookup.
LEDGER_NOUNS = (
    "sales",
    "income",
    "expenses",
    "expense",
    "spending",
    "debts",
    "debt",
    "profit",
    "transactions",
    "history",
    "earnings",
)

# Longest phrases first; the first window that matches wins.
RANGE_PHRASES = (
    ("past 30 days", "month"),
    ("last 30 days", "month"),
    ("30 days", "month"),
    ("past 7 days", "week"),
    ("last 7 days", "week"),
    ("7 days", "week"),
    ("this month", "month"),
    ("past month", "month"),
    ("last month", "month"),
    ("monthly", "month"),
    ("month", "month"),
    ("this week", "week"),
    ("past week", "week"),
    ("last week", "week"),
    ("weekly", "week"),
    ("week", "week"),
    ("today", "today"),
    ("tonight", "today"),
    ("this morning", "today"),
    ("daily", "today"),
)


# =============================================================================
# AMOUNT CUES
# =============================================================================

CURRENCY_WORDS = (
    "ugx",
    "ksh",
    "kes",
    "kshs",
    "tsh",
    "tzs",
    "rwf",
    "ngn",
    "ghs",
    "usd",
    "eur",
    "gbp",
    "shs",
    "sh",
    "shillings",
    "shilling",
    "naira",
    "cedis",
    "dollars",
    "dollar",
    "bob",
)

CURRENCY_SYMBOLS = ("$", "€", "£", "₦", "₵", "/=")

# Words that usually sit right before the money figure.
MONETARY_CUE_WORDS = (
    "for",
    "at",
    "worth",
    "amount",
    "total",
    "cost",
    "costs",
    "price",
    "of",
    "paid",
    "owes",
)

UNIT_MULTIPLIERS = {
    "k": 1_000,
    "m": 1_000_000,
    "bn": 1_000_000_000,
}


# =============================================================================
# CATEGORY HINTS
# =============================================================================

CATEGORY_KEYWORDS = {
    "Fuel": ("fuel", "petrol", "diesel", "gas", "paraffin"),
    "Rent": ("rent", "rental", "lease"),
    "Stock": ("stock", "supplies", "supply", "inventory", "goods", "restock"),
    "Salaries": ("salary", "salaries", "wages", "wage", "payroll"),
    "Food": ("food", "lunch", "breakfast", "dinner", "meal", "meals"),
    "Transport": ("transport", "taxi", "boda", "fare", "delivery", "shipping"),
    "Utilities": ("electricity", "power", "water", "utility", "utilities", "internet", "airtime", "data", "yaka"),
    "Taxes": ("tax", "taxes", "vat", "license", "licence"),
    "Maintenance": ("repair", "repairs", "maintenance", "service", "servicing"),
    "Sales": ("sales", "sale"),
}

# Never used as a category or a counterparty.
GENERIC_NOUNS = frozenset({
    "item", "items", "thing", "things", "stuff", "something", "money", "cash",
    "debt", "debts", "loan", "credit", "balance", "payment", "amount",
})

STOPWORDS = frozenset({
    "a", "an", "the", "and", "or", "of", "for", "to", "from", "by", "with", "at",
    "on", "in", "into", "my", "our", "his", "her", "their", "your", "me", "us",
    "him", "them", "i", "we", "you", "he", "she", "they", "it", "it's", "i've",
    "i'm", "is", "was", "were", "be", "been", "has", "have", "had", "just",
    "also", "some", "few", "this", "that", "these", "those", "all", "each",
    "per", "x", "pcs", "pieces", "piece", "bag", "bags", "kg", "kgs", "litres",
    "liters", "back", "off", "up", "got", "get", "took", "gave", "give",
    "yesterday", "today", "tonight", "now", "morning", "evening", "week",
    "month", "last", "past", "days", "day", "this", "please", "new", "same",
})

PRONOUNS = frozenset({
    "i", "we", "you", "he", "she", "they", "it", "someone", "somebody",
    "anyone", "customer", "client", "buyer", "seller", "supplier", "guy",
    "man", "woman", "lady", "friend", "neighbour", "neighbor", "one",
})


def _phrase_words(*groups) -> frozenset:
    words = set()
    for group in groups:
        for phrase in group:
            words.update(phrase.split())
    return frozenset(words)


# Every word the extractor itself understands. Such a word is never a name.
KNOWN_WORDS = (
    STOPWORDS
    | PRONOUNS
    | GENERIC_NOUNS
    | _phrase_words(
        REPAYMENT_PHRASES,
        DEBT_PHRASES,
        OUTFLOW_PHRASES,
        INFLOW_PHRASES,
        QUERY_PHRASES,
        LEDGER_NOUNS,
        CURRENCY_WORDS,
        MONETARY_CUE_WORDS,
        [p for p, _ in RANGE_PHRASES],
        [w for words in CATEGORY_KEYWORDS.values() for w in words],
    )
)


REPAYMENT_RE = phrase_pattern(REPAYMENT_PHRASES)
DEBT_RE = phrase_pattern(DEBT_PHRASES)
OUTFLOW_RE = phrase_pattern(OUTFLOW_PHRASES)
INFLOW_RE = phrase_pattern(INFLOW_PHRASES)
OUTFLOW_VERB_RE = phrase_pattern(OUTFLOW_VERBS)
INFLOW_VERB_RE = phrase_pattern(INFLOW_VERBS)
PASSIVE_PAID_RE = phrase_pattern(PASSIVE_PAID_PHRASES)
QUERY_RE = phrase_pattern(QUERY_PHRASES)
LEDGER_NOUN_RE = phrase_pattern(LEDGER_NOUNS)
ON_CREDIT_RE = phrase_pattern(("on credit", "on loan"))
