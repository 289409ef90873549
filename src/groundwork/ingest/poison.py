"""Poison filter — drop placeholder and degenerate chunks before embedding."""

from __future__ import annotations

import re
from dataclasses import replace

from groundwork.ingest.base import TextChunk

MIN_CONTENT_LENGTH = 5

# Anchored patterns match the whole chunk; a placeholder line inside real text is kept.
POISON_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"lorem\s+ipsum", re.IGNORECASE),
    re.compile(r"\[(?:placeholder|todo|tbd|insert|your .+ here)\]", re.IGNORECASE),
    re.compile(
        r"^(?:I don'?t know\.?|N/A\.?|TBD\.?|TODO\.?|Coming soon\.?|Under construction\.?)$",
        re.IGNORECASE,
    ),
    re.compile(r"^(?:This is a (?:sample|test|example|placeholder))", re.IGNORECASE),
]


def is_poisoned(content: str) -> bool:
    """True if *content* is too short or matches a placeholder pattern."""
    trimmed = content.strip()
    if len(trimmed) < MIN_CONTENT_LENGTH:
        return True
    return any(p.search(trimmed) for p in POISON_PATTERNS)


def filter_poisoned_chunks(chunks: list[TextChunk]) -> tuple[list[TextChunk], int]:
    """Split *chunks* into survivors (re-indexed from 0) and a discarded count."""
    clean: list[TextChunk] = []
    discarded = 0
    for chunk in chunks:
        if is_poisoned(chunk.content):
            discarded += 1
        else:
            clean.append(replace(chunk, chunk_index=len(clean)))
    return clean, discarded
