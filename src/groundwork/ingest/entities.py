"""Entity recognizers shared by the chunkers and the query preprocessor.

A recognizer is a ``(name, pattern)`` pair. Scanning a text with a table of
recognizers claims character ranges in table order: a match that overlaps an
already-claimed range is discarded, so earlier entries win.

Patterns stay on one line (``[ \\t]`` rather than ``\\s``) so that an entity
never swallows a paragraph break.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Iterable, Sequence

# ---------------------------------------------------------------------------
# Pattern building blocks
# ---------------------------------------------------------------------------

STREET_SUFFIX = (
    r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Court|Ct"
    r"|Place|Pl|Way|Circle|Cir|Terrace|Terr|Parkway|Pkwy)"
)
_UNIT = r"(?:[ \t]*,?[ \t]*(?:\#|(?:Apt|Suite|Unit|Ste|Fl|Floor)\b\.?)[ \t]*[\w-]+)"
_CITY = r"(?:[ \t]*,[ \t]*[A-Za-z][A-Za-z.'-]*(?:[ \t]+[A-Za-z][A-Za-z.'-]*){0,3})"
_STATE_ZIP = r"(?:[ \t]*,?[ \t]*[A-Z]{2}[ \t]+\d{5}(?:-\d{4})?)"

ADDRESS_RE = re.compile(
    r"\b\d{1,6}[ \t]+(?:[A-Za-z0-9][\w.'-]*[ \t]+){0,5}?"
    + STREET_SUFFIX
    + r"\b\.?"
    + _UNIT + "?"
    + _CITY + "?"
    + _STATE_ZIP + "?",
    re.IGNORECASE,
)

PHONE_RE = re.compile(
    r"(?<![\w-])(?:\+?1[-. \t]?)?(?:\(\d{3}\)|\d{3})[-. \t]?\d{3}[-. \t]?\d{4}(?!\d)"
    r"(?:[ \t]*(?:ext|x|extension)\.?[ \t]*\d+)?",
    re.IGNORECASE,
)

EMAIL_RE = re.compile(r"\b[\w.+-]+@[\w.-]+\.[A-Za-z]{2,}\b")

# Trailing sentence punctuation is not part of the URL.
URL_RE = re.compile(
    r"https?://[^\s<>\"'{}|\\^`\[\]()]*[^\s<>\"'{}|\\^`\[\]().,;:!?]",
    re.IGNORECASE,
)

MONEY = r"\$\d+(?:,\d{3})*(?:\.\d{2})?"
PRICE_RE = re.compile(
    MONEY
    + r"(?:[ \t]*[-–][ \t]*" + MONEY + r")?"
    r"(?:[ \t]*(?:per|/)[ \t]*(?:hour|hr|day|week|month|year|mo|yr|night|person|unit|sq[ \t]*ft)\b)?",
    re.IGNORECASE,
)

_MERIDIEM = r"[ \t]*[ap]\.?m\.?(?![a-z])"
_CLOCK_STRICT = r"(?:\d{1,2}(?::\d{2})?" + _MERIDIEM + r"|\d{1,2}:\d{2})"
_CLOCK_LOOSE = r"(?:\d{1,2}(?::\d{2})?(?:" + _MERIDIEM + r")?)"
_RANGE_SEP = r"[ \t]*(?:-|–|to|through|thru)[ \t]*"

# At least one end of the range must look like a clock time, so "10-12"
# (a count, a score, a page range) is not claimed.
TIME_RANGE_RE = re.compile(
    r"\b(?:"
    + _CLOCK_STRICT + _RANGE_SEP + _CLOCK_LOOSE
    + "|"
    + _CLOCK_LOOSE + _RANGE_SEP + _CLOCK_STRICT
    + ")",
    re.IGNORECASE,
)

WEEKDAY = r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*\.?"
MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?"
_DAY = r"\d{1,2}(?:st|nd|rd|th)?"

DATE_RANGE_RE = re.compile(
    r"\b(?:"
    + WEEKDAY + _RANGE_SEP + WEEKDAY
    + "|"
    + MONTH + r"[ \t]+" + _DAY + _RANGE_SEP + r"(?:" + MONTH + r"[ \t]+)?" + _DAY
    + r"(?:,?[ \t]+\d{4})?"
    + ")",
    re.IGNORECASE,
)

# Case-sensitive: product codes are upper-case letter runs followed by digits.
SKU_RE = re.compile(
    r"\b(?:(?:SKU|Item|Product|Model|Part)[ \t]*[#:]?[ \t]*)?"
    r"[A-Z]{2,}[-_]?\d{3,}(?:[-_]?[A-Z\d]+)*\b"
)

Recognizer = tuple[str, re.Pattern]

# Scan order used during chunking.
CHUNK_RECOGNIZERS: list[Recognizer] = [
    ("url", URL_RE),
    ("email", EMAIL_RE),
    ("phone", PHONE_RE),
    ("address", ADDRESS_RE),
    ("price", PRICE_RE),
    ("time_range", TIME_RANGE_RE),
    ("date_range", DATE_RANGE_RE),
    ("sku", SKU_RE),
]


# ---------------------------------------------------------------------------
# Spans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntitySpan:
    """A claimed ``[start, end)`` character range of *text*."""

    type: str
    start: int
    end: int
    value: str

    def contains(self, pos: int) -> bool:
        """True if *pos* falls strictly inside the span (a cut there would split it)."""
        return self.start < pos < self.end


class ClaimedRanges:
    """Sorted set of non-overlapping half-open intervals."""

    def __init__(self) -> None:
        self._starts: list[int] = []
        self._ends: list[int] = []

    def overlaps(self, start: int, end: int) -> bool:
        i = bisect_right(self._starts, start)
        if i > 0 and self._ends[i - 1] > start:
            return True
        return i < len(self._starts) and self._starts[i] < end

    def claim(self, start: int, end: int) -> bool:
        """Claim ``[start, end)`` unless it overlaps an existing range."""
        if self.overlaps(start, end):
            return False
        i = bisect_right(self._starts, start)
        self._starts.insert(i, start)
        self._ends.insert(i, end)
        return True

    def __len__(self) -> int:
        return len(self._starts)


def find_entity_spans(
    text: str, recognizers: Sequence[Recognizer] = CHUNK_RECOGNIZERS
) -> list[EntitySpan]:
    """Scan *text* with *recognizers* in order; return claimed spans by position."""
    claimed = ClaimedRanges()
    spans: list[EntitySpan] = []
    for name, pattern in recognizers:
        for m in pattern.finditer(text):
            if m.end() <= m.start():
                continue
            if claimed.claim(m.start(), m.end()):
                spans.append(EntitySpan(name, m.start(), m.end(), m.group(0)))
    spans.sort(key=lambda s: s.start)
    return spans


def entity_types_in_range(spans: Iterable[EntitySpan], start: int, end: int) -> list[str]:
    """Entity types of spans lying wholly within ``[start, end)``, first-seen order."""
    types: list[str] = []
    for span in spans:
        if span.start >= start and span.end <= end and span.type not in types:
            types.append(span.type)
    return types


def entity_types_in_text(text: str) -> list[str]:
    """Entity types detected anywhere in *text*, in scan order."""
    return [name for name, pattern in CHUNK_RECOGNIZERS if pattern.search(text)]


def is_inside_entity(spans: Sequence[EntitySpan], pos: int) -> bool:
    """True if cutting *text* at *pos* would split one of *spans*."""
    return any(span.contains(pos) for span in spans)
