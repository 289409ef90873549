"""Base chunker interface and shared splitting helpers."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Sequence

from groundwork.ingest.entities import EntitySpan, is_inside_entity

_PARAGRAPH_BREAK = re.compile(r"\n\n+")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_WORD_BREAK = re.compile(r"\s+")


@dataclass
class ChunkOptions:
    """Size and entity-handling options shared by every chunking strategy.

    Attributes:
        max_chunk_size: Upper bound on chunk length in characters.
        chunk_overlap: Characters re-read by the character chunker and by the
            overlap-injection pass.
        min_chunk_size: Chunks shorter than this are dropped.
        preserve_entities: Refuse split points near detected entities.
        entity_padding: Characters around an entity in which no paragraph
            break is a safe split point.
    """

    max_chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    preserve_entities: bool = True
    entity_padding: int = 50

    def __post_init__(self) -> None:
        if self.max_chunk_size < 1:
            raise ValueError("max_chunk_size must be >= 1")
        if not 0 <= self.min_chunk_size <= self.max_chunk_size:
            raise ValueError("min_chunk_size must be in [0, max_chunk_size]")
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap must be >= 0")
        if self.entity_padding < 0:
            raise ValueError("entity_padding must be >= 0")


@dataclass
class TextChunk:
    """A chunk produced by a chunker, before it is bound to a knowledge source."""

    content: str
    chunk_index: int
    start_char: int
    end_char: int
    page_number: int | None = None
    contains_entities: list[str] | None = field(default=None)

    def to_metadata(self) -> dict:
        """Return the chunk metadata map persisted alongside the content."""
        meta: dict = {
            "chunk_index": self.chunk_index,
            "start_char": self.start_char,
            "end_char": self.end_char,
        }
        if self.page_number is not None:
            meta["page_number"] = self.page_number
        if self.contains_entities:
            meta["contains_entities"] = list(self.contains_entities)
        return meta


class BaseChunker(ABC):
    """Abstract base for all chunking strategies.

    Subclasses implement ``chunk()``. A chunker never raises on content:
    empty or degenerate input yields an empty list.
    """

    def __init__(self, options: ChunkOptions | None = None) -> None:
        self.options = options or ChunkOptions()

    @abstractmethod
    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into an ordered list of chunks with sequential ``chunk_index``."""

    @staticmethod
    def count_tokens(text: str) -> int:
        """Approximate token count: 4 characters ≈ 1 token."""
        return math.ceil(len(text) / 4)


# ---------------------------------------------------------------------------
# Splitting helpers
# ---------------------------------------------------------------------------


def paragraph_breaks(text: str) -> list[int]:
    """Offsets just past each run of blank lines (the start of the next paragraph)."""
    return [m.end() for m in _PARAGRAPH_BREAK.finditer(text)]


def paragraph_ranges(text: str) -> list[tuple[int, int]]:
    """``[start, end)`` of each non-blank paragraph, trimmed of surrounding whitespace."""
    ranges: list[tuple[int, int]] = []
    pos = 0
    for m in _PARAGRAPH_BREAK.finditer(text):
        ranges.append((pos, m.start()))
        pos = m.end()
    ranges.append((pos, len(text)))

    trimmed: list[tuple[int, int]] = []
    for start, end in ranges:
        segment = text[start:end]
        stripped = segment.strip()
        if not stripped:
            continue
        lead = len(segment) - len(segment.lstrip())
        trimmed.append((start + lead, start + lead + len(stripped)))
    return trimmed


def _cuts(pattern: re.Pattern, text: str, lo: int, hi: int) -> list[int]:
    return [m.end() for m in pattern.finditer(text, lo, hi) if lo < m.end() < hi]


def split_oversized(
    text: str,
    start: int,
    end: int,
    limit: int,
    spans: Sequence[EntitySpan] = (),
) -> list[tuple[int, int]]:
    """Partition ``text[start:end]`` into contiguous pieces of at most *limit* chars.

    Cuts prefer sentence ends, then any whitespace, and never fall inside one of
    *spans*. An entity longer than *limit* stays whole, so its piece may exceed
    the limit.
    """
    pieces: list[tuple[int, int]] = []
    pos = start
    while end - pos > limit:
        window = pos + limit + 1
        cut = None
        for pattern in (_SENTENCE_BREAK, _WORD_BREAK):
            allowed = [c for c in _cuts(pattern, text, pos, window) if not is_inside_entity(spans, c)]
            if allowed:
                cut = allowed[-1]
                break
        if cut is None:
            later = [c for c in _cuts(_WORD_BREAK, text, pos, end) if not is_inside_entity(spans, c)]
            if not later:
                break
            cut = later[0]
        pieces.append((pos, cut))
        pos = cut
    pieces.append((pos, end))
    return pieces
