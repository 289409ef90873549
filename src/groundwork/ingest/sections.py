"""Markdown section chunker — one chunk per ``#``…``######`` section."""

from __future__ import annotations

import re

from groundwork.ingest.base import BaseChunker, TextChunk
from groundwork.ingest.entities import entity_types_in_text
from groundwork.ingest.paragraph import EntityAwareChunker, ParagraphChunker

_HEADING_START = re.compile(r"^#{1,6}\s", re.MULTILINE)


def split_sections(text: str) -> list[tuple[int, str]]:
    """Split *text* before every Markdown heading; return ``(offset, section)`` pairs."""
    starts = [m.start() for m in _HEADING_START.finditer(text)]
    if not starts or starts[0] != 0:
        starts.insert(0, 0)
    bounds = starts + [len(text)]
    return [(a, text[a:b]) for a, b in zip(bounds, bounds[1:]) if b > a]


class SectionChunker(BaseChunker):
    """Split Markdown at heading boundaries.

    Sections that fit ``max_chunk_size`` become one chunk; larger sections are
    sub-chunked with the entity-aware paragraph chunker (or the plain one when
    ``preserve_entities`` is off). Sections below ``min_chunk_size`` are dropped.
    """

    def chunk(self, text: str) -> list[TextChunk]:
        opts = self.options
        sub_chunker = EntityAwareChunker(opts) if opts.preserve_entities else ParagraphChunker(opts)
        chunks: list[TextChunk] = []

        for offset, section in split_sections(text):
            if not section.strip():
                continue
            if len(section) > opts.max_chunk_size:
                for sub in sub_chunker.chunk(section):
                    sub.start_char += offset
                    sub.end_char += offset
                    sub.chunk_index = len(chunks)
                    chunks.append(sub)
            elif len(section.strip()) >= opts.min_chunk_size:
                types = entity_types_in_text(section) if opts.preserve_entities else []
                chunks.append(
                    TextChunk(
                        content=section.strip(),
                        chunk_index=len(chunks),
                        start_char=offset,
                        end_char=offset + len(section),
                        contains_entities=types or None,
                    )
                )

        return chunks
