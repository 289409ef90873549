"""Page-aware chunker for multi-page sources (PDF text joined with form feeds)."""

from __future__ import annotations

from groundwork.ingest.base import BaseChunker, ChunkOptions, TextChunk
from groundwork.ingest.paragraph import EntityAwareChunker, ParagraphChunker

PAGE_BREAK = "\f"


class PageAwareChunker(BaseChunker):
    """Chunk each page separately and tag chunks with their 1-based page number.

    Offsets are global: each page's offset accumulates the preceding pages'
    lengths plus one character for the page break.
    """

    def __init__(self, options: ChunkOptions | None = None, page_break: str = PAGE_BREAK) -> None:
        super().__init__(options)
        self.page_break = page_break

    def chunk(self, text: str) -> list[TextChunk]:
        opts = self.options
        page_chunker = EntityAwareChunker(opts) if opts.preserve_entities else ParagraphChunker(opts)
        chunks: list[TextChunk] = []
        offset = 0

        for page_number, page_text in enumerate(text.split(self.page_break), start=1):
            for c in page_chunker.chunk(page_text):
                c.start_char += offset
                c.end_char += offset
                c.page_number = page_number
                c.chunk_index = len(chunks)
                chunks.append(c)
            offset += len(page_text) + len(self.page_break)

        return chunks
