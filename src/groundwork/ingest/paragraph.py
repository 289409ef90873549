"""Paragraph chunkers: plain and entity-aware.

Both accumulate blank-line-delimited paragraphs into chunks of at most
``max_chunk_size`` characters. The entity-aware variant only splits at a
paragraph break that is at least ``entity_padding`` characters away from
every detected entity, so an address or phone number never straddles two
chunks.
"""

from __future__ import annotations

from groundwork.ingest.base import (
    BaseChunker,
    TextChunk,
    paragraph_breaks,
    paragraph_ranges,
    split_oversized,
)
from groundwork.ingest.entities import EntitySpan, entity_types_in_range, find_entity_spans


class ParagraphChunker(BaseChunker):
    """Accumulate paragraphs (joined by a blank line) until the next would overflow.

    A single paragraph longer than ``max_chunk_size`` is first cut at sentence
    or word boundaries.
    """

    def chunk(self, text: str) -> list[TextChunk]:
        opts = self.options
        pieces: list[tuple[int, int]] = []
        for start, end in paragraph_ranges(text):
            if end - start > opts.max_chunk_size:
                pieces.extend(split_oversized(text, start, end, opts.max_chunk_size))
            else:
                pieces.append((start, end))

        chunks: list[TextChunk] = []
        parts: list[str] = []
        chunk_start = 0
        chunk_end = 0
        size = 0

        for start, end in pieces:
            piece = text[start:end].strip()
            if not piece:
                continue
            if parts and size + len(piece) + 2 > opts.max_chunk_size:
                self._emit(chunks, "\n\n".join(parts), chunk_start, chunk_end)
                parts, size = [], 0
            if not parts:
                chunk_start = start
                size = len(piece)
            else:
                size += len(piece) + 2
            parts.append(piece)
            chunk_end = end

        if parts:
            self._emit(chunks, "\n\n".join(parts), chunk_start, chunk_end)
        return chunks

    def _emit(self, chunks: list[TextChunk], content: str, start: int, end: int) -> None:
        content = content.strip()
        if content and len(content) >= self.options.min_chunk_size:
            chunks.append(
                TextChunk(content=content, chunk_index=len(chunks), start_char=start, end_char=end)
            )


class EntityAwareChunker(BaseChunker):
    """Paragraph chunking that never places a boundary inside or near an entity.

    1. Scan the full text for entity spans.
    2. Keep only paragraph breaks outside every span's padded range.
    3. Walk the resulting segments, flushing a chunk when the next segment
       would push it past ``max_chunk_size``.

    A segment that is itself too large (no safe paragraph break inside it) is
    cut at sentence or word boundaries outside any entity span. Falls back to
    ``ParagraphChunker`` when ``preserve_entities`` is off.
    """

    def chunk(self, text: str) -> list[TextChunk]:
        opts = self.options
        if not opts.preserve_entities:
            return ParagraphChunker(opts).chunk(text)
        if not text.strip():
            return []

        spans = find_entity_spans(text)
        points = self.safe_split_points(text, spans)

        segments: list[tuple[int, int]] = []
        for start, end in zip(points, points[1:]):
            if end - start > opts.max_chunk_size:
                segments.extend(split_oversized(text, start, end, opts.max_chunk_size, spans))
            else:
                segments.append((start, end))

        chunks: list[TextChunk] = []
        chunk_start: int | None = None
        chunk_end = 0
        for start, end in segments:
            if chunk_start is not None and end - chunk_start > opts.max_chunk_size:
                self._emit(chunks, text, chunk_start, chunk_end, spans)
                chunk_start = None
            if chunk_start is None:
                chunk_start = start
            chunk_end = end

        if chunk_start is not None:
            self._emit(chunks, text, chunk_start, chunk_end, spans)
        return chunks

    def safe_split_points(self, text: str, spans: list[EntitySpan]) -> list[int]:
        """Return sorted split offsets: 0, each safe paragraph break, len(text)."""
        pad = self.options.entity_padding
        points = [0]
        for bp in paragraph_breaks(text):
            if bp >= len(text):
                continue
            if not any(s.start - pad < bp < s.end + pad for s in spans):
                points.append(bp)
        points.append(len(text))
        return points

    def _emit(
        self,
        chunks: list[TextChunk],
        text: str,
        start: int,
        end: int,
        spans: list[EntitySpan],
    ) -> None:
        content = text[start:end].strip()
        if not content or len(content) < self.options.min_chunk_size:
            return
        types = entity_types_in_range(spans, start, end)
        chunks.append(
            TextChunk(
                content=content,
                chunk_index=len(chunks),
                start_char=start,
                end_char=end,
                contains_entities=types or None,
            )
        )
