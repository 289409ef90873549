"""Q&A-pair chunker — each question and its answer stay in one chunk.

Recognised question markers (case-insensitive, at the start of a line):
``Q:``, ``Q.``, ``Question:``, ``Q1:``, ``Question 2)``, optionally behind a
Markdown heading (``### Q:``), bold markers (``**Q:**``) or a list number
(``1. Q:``).
"""

from __future__ import annotations

import re

from groundwork.ingest.base import BaseChunker, ChunkOptions, TextChunk
from groundwork.ingest.paragraph import EntityAwareChunker

QA_MIN_CHUNK_SIZE = 10

_QUESTION_MARKER = r"(?:\#{1,4}[ \t]*)?(?:\d+[.)][ \t]*)?\*{0,2}(?:Q|Question)[ \t]*\d*[ \t]*[:.)]"

QUESTION_START_RE = re.compile(r"^[ \t]*" + _QUESTION_MARKER, re.IGNORECASE | re.MULTILINE)

QA_PAIR_MARKER = "qa_pair"


def detect_qa_structure(text: str) -> bool:
    """Return True if *text* contains at least two question markers."""
    count = 0
    for _ in QUESTION_START_RE.finditer(text):
        count += 1
        if count >= 2:
            return True
    return False


class QAChunker(BaseChunker):
    """Split at question boundaries; every Q+A unit is one atomic chunk.

    A Q+A unit is never split, even when it exceeds ``max_chunk_size``.
    Text before the first question falls back to entity-aware paragraph
    chunking.
    The minimum chunk size is capped at ``QA_MIN_CHUNK_SIZE`` since short
    answers are still meaningful.
    """

    def __init__(self, options: ChunkOptions | None = None) -> None:
        super().__init__(options)
        if self.options.min_chunk_size > QA_MIN_CHUNK_SIZE:
            self.options = ChunkOptions(
                max_chunk_size=self.options.max_chunk_size,
                chunk_overlap=self.options.chunk_overlap,
                min_chunk_size=QA_MIN_CHUNK_SIZE,
                preserve_entities=self.options.preserve_entities,
                entity_padding=self.options.entity_padding,
            )

    def chunk(self, text: str) -> list[TextChunk]:
        starts = [m.start() for m in QUESTION_START_RE.finditer(text)]
        bounds = ([0] if not starts or starts[0] != 0 else []) + starts + [len(text)]
        chunks: list[TextChunk] = []

        for seg_start, seg_end in zip(bounds, bounds[1:]):
            segment = text[seg_start:seg_end]
            trimmed = segment.strip()
            if not trimmed:
                continue

            if seg_start in starts:
                chunks.append(
                    TextChunk(
                        content=trimmed,
                        chunk_index=len(chunks),
                        start_char=seg_start,
                        end_char=seg_end,
                        contains_entities=[QA_PAIR_MARKER],
                    )
                )
            elif len(trimmed) >= self.options.min_chunk_size:
                for sub in EntityAwareChunker(self.options).chunk(segment):
                    sub.start_char += seg_start
                    sub.end_char += seg_start
                    sub.chunk_index = len(chunks)
                    chunks.append(sub)

        return chunks
