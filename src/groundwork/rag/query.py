"""Query preprocessing for hybrid retrieval.

Detects entities in the user's query, classifies the query (entity lookup,
conceptual question, mixed, unknown), expands it with related terms for the
vector leg and extracts keywords for the full-text leg. Pure text
transformation; nothing here touches the network or the database.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from groundwork.ingest.entities import (
    ADDRESS_RE,
    EMAIL_RE,
    MONTH,
    PHONE_RE,
    PRICE_RE,
    URL_RE,
    ClaimedRanges,
    Recognizer,
)

QUERY_TYPES = ("entity", "conceptual", "mixed", "unknown")

# ---------------------------------------------------------------------------
# Query-only recognizers
# ---------------------------------------------------------------------------

SKU_QUERY_RE = re.compile(r"\b[A-Z]{2,}[-_]?\d{3,}(?:[-_]?[A-Z\d]+)*\b")

DATE_RE = re.compile(
    r"\b(?:\d{1,2}[-/]\d{1,2}[-/]\d{2,4}"
    r"|\d{4}[-/]\d{1,2}[-/]\d{1,2}"
    r"|" + MONTH + r"\s+\d{1,2}(?:st|nd|rd|th)?(?:,?\s+\d{4})?)\b",
    re.IGNORECASE,
)

TIME_RE = re.compile(
    r"\b(?:\d{1,2}:\d{2}(?::\d{2})?\s*(?:AM|PM|am|pm)?|\d{1,2}\s*(?:AM|PM|am|pm))\b"
)

NUMBER_RE = re.compile(r"\b\d+(?:,\d{3})*(?:\.\d+)?\b")

# Priority order: earlier entries claim their span first.
QUERY_RECOGNIZERS: list[Recognizer] = [
    ("url", URL_RE),
    ("email", EMAIL_RE),
    ("phone", PHONE_RE),
    ("address", ADDRESS_RE),
    ("sku", SKU_QUERY_RE),
    ("price", PRICE_RE),
    ("date", DATE_RE),
    ("time", TIME_RE),
    ("number", NUMBER_RE),
]

HIGH_VALUE_ENTITIES = frozenset(["address", "phone", "email", "sku"])

# ---------------------------------------------------------------------------
# Classification and expansion tables
# ---------------------------------------------------------------------------

SHORT_QUERY_WORDS = 5

QUESTION_PATTERNS = [
    re.compile(
        r"^(?:what|how|why|when|where|who|which|can|could|would|should|do|does|is|are|will)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\?$"),
    re.compile(r"\b(?:explain|describe|tell me|help me understand)\b", re.IGNORECASE),
]

LOOKUP_INDICATORS = [
    re.compile(r"\b(?:find|locate|search|look up|looking for)\b", re.IGNORECASE),
    re.compile(r"\b(?:number|address|email|contact|phone|price|cost)\b", re.IGNORECASE),
]

EXPANSION_TEMPLATES: dict[str, list[str]] = {
    "address": ["address", "location", "property", "building", "place"],
    "phone": ["phone", "number", "contact", "call", "telephone"],
    "email": ["email", "contact", "address", "mail"],
    "price": ["price", "cost", "fee", "rate", "charge"],
    "date": ["date", "day", "when", "schedule"],
    "time": ["time", "hours", "schedule", "when", "open"],
}
TERMS_PER_ENTITY = 2

# Used only when the query has no entities; the first matching intent wins.
INTENT_EXPANSIONS: list[tuple[re.Pattern[str], list[str]]] = [
    (
        re.compile(
            r"\b(?:do you have|have any|anything available|what.*(?:available|offer|have)"
            r"|need (?:a|some|to find)|looking for|searching for|find me|show me|what options)\b",
            re.IGNORECASE,
        ),
        ["available", "listing", "options", "price", "catalog", "inventory"],
    ),
    (
        re.compile(
            r"\b(?:how much|what.*cost|pricing|rates?|affordable|budget|cheapest|under \$)\b",
            re.IGNORECASE,
        ),
        ["price", "cost", "rate", "plan", "fee", "pricing"],
    ),
    (
        re.compile(
            r"\b(?:book|schedule|appointment|reserve|visit|when.*(?:available|open|can i))\b",
            re.IGNORECASE,
        ),
        ["schedule", "booking", "availability", "appointment", "calendar"],
    ),
    (
        re.compile(
            r"\b(?:features?|specs?|specifications?|what.*(?:include|come with)|details?"
            r"|amenities?|capabilities)\b",
            re.IGNORECASE,
        ),
        ["features", "details", "specifications", "included", "description"],
    ),
]

STOP_WORDS = frozenset(
    """
    a an the and or but in on at to for of with by from is are was were be been
    being have has had do does did will would could should may might must can
    this that these those i you he she it we they what which who whom when where
    why how me my your his her its our their about into through
    """.split()
)

_ADDRESS_ABBREVIATIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"\b{abbr}\b\.?", re.IGNORECASE), full)
    for abbr, full in [
        ("St", "Street"),
        ("Ave", "Avenue"),
        ("Rd", "Road"),
        ("Blvd", "Boulevard"),
        ("Dr", "Drive"),
        ("Ln", "Lane"),
        ("Ct", "Court"),
        ("Apt", "Apartment"),
        ("Ste", "Suite"),
        ("Fl", "Floor"),
    ]
]

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectedEntity:
    type: str
    value: str
    normalized: str
    start: int
    end: int


@dataclass
class PreprocessedQuery:
    """Everything the retriever needs to know about one query.

    Attributes:
        original: The trimmed input query.
        expanded: Original plus related terms; embedded for the vector leg.
        normalized: Lower-cased, punctuation-free form of the query.
        entities: Detected entities ordered by position.
        query_type: One of ``QUERY_TYPES``.
        keywords: Entity values plus significant words, deduplicated.
    """

    original: str
    expanded: str
    normalized: str
    entities: list[DetectedEntity] = field(default_factory=list)
    query_type: str = "unknown"
    keywords: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def preprocess_query(query: str) -> PreprocessedQuery:
    """Run detection, classification, expansion and keyword extraction."""
    text = query.strip()
    entities = detect_entities(text)
    return PreprocessedQuery(
        original=text,
        expanded=expand_query(text, entities),
        normalized=normalize_query(text),
        entities=entities,
        query_type=detect_query_type(text, entities),
        keywords=extract_keywords(text, entities),
    )


def detect_entities(query: str) -> list[DetectedEntity]:
    """Detect entities in priority order; lower-priority overlapping matches are dropped."""
    claimed = ClaimedRanges()
    entities: list[DetectedEntity] = []
    for entity_type, pattern in QUERY_RECOGNIZERS:
        for m in pattern.finditer(query):
            if m.end() > m.start() and claimed.claim(m.start(), m.end()):
                entities.append(
                    DetectedEntity(
                        type=entity_type,
                        value=m.group(0),
                        normalized=normalize_entity(m.group(0), entity_type),
                        start=m.start(),
                        end=m.end(),
                    )
                )
    entities.sort(key=lambda e: e.start)
    return entities


def detect_query_type(query: str, entities: list[DetectedEntity] | None = None) -> str:
    """Classify *query* as ``entity``, ``conceptual``, ``mixed`` or ``unknown``."""
    entities = entities or []
    has_entities = bool(entities)
    has_high_value = any(e.type in HIGH_VALUE_ENTITIES for e in entities)
    is_question = any(p.search(query) for p in QUESTION_PATTERNS)
    is_lookup = any(p.search(query) for p in LOOKUP_INDICATORS)
    is_short = len(query.split()) <= SHORT_QUERY_WORDS

    if has_high_value and (is_short or is_lookup):
        return "entity"
    if is_question and not has_high_value:
        return "conceptual"
    if has_entities and is_question:
        return "mixed"
    if has_high_value:
        return "entity"
    return "unknown"


def expand_query(query: str, entities: list[DetectedEntity]) -> str:
    """Append related terms for the detected entities (or the query's intent).

    Terms already present in the query, compared case-insensitively, are
    never appended.
    """
    expansions: list[str] = []
    for entity in entities:
        expansions.extend(EXPANSION_TEMPLATES.get(entity.type, [])[:TERMS_PER_ENTITY])

    if not entities:
        for pattern, terms in INTENT_EXPANSIONS:
            if pattern.search(query):
                expansions.extend(terms)
                break

    query_words = set(normalize_query(query).split())
    extra = [t for t in dict.fromkeys(expansions) if t.lower() not in query_words]
    if not extra:
        return query
    return f"{query} {' '.join(extra)}"


def normalize_query(query: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", query.lower())).strip()


def normalize_entity(value: str, entity_type: str) -> str:
    if entity_type == "phone":
        return re.sub(r"\D", "", value)
    if entity_type == "email":
        return value.lower()
    if entity_type == "address":
        for pattern, full in _ADDRESS_ABBREVIATIONS:
            value = pattern.sub(full, value)
        return value
    if entity_type == "sku":
        return value.upper()
    return value


def extract_keywords(query: str, entities: list[DetectedEntity]) -> list[str]:
    """Entity values first, then significant query words; order-preserving, deduplicated."""
    keywords = [e.value for e in entities]
    keywords.extend(
        w for w in normalize_query(query).split() if len(w) > 2 and w not in STOP_WORDS
    )
    return list(dict.fromkeys(keywords))


def build_fts_query(keywords: list[str], operator: str = "OR") -> str:
    """Build an FTS5 MATCH expression from *keywords*.

    Each keyword is stripped of punctuation and quoted as a phrase, so user
    input can never inject FTS5 syntax. Keywords shorter than two characters
    are dropped. Returns ``""`` when nothing usable remains.
    """
    op = operator.upper()
    if op not in ("OR", "AND"):
        raise ValueError(f"operator must be 'OR' or 'AND', got {operator!r}")
    terms = []
    for keyword in keywords:
        cleaned = _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", keyword)).strip()
        if len(cleaned) > 1:
            terms.append(f'"{cleaned}"')
    return f" {op} ".join(dict.fromkeys(terms))


def keyword_search_query(preprocessed: PreprocessedQuery) -> str:
    """FTS5 expression for the keyword leg: normalized non-stop-word terms, implicit AND."""
    terms = [w for w in preprocessed.normalized.split() if w not in STOP_WORDS]
    return build_fts_query(terms, "AND")
