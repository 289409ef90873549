"""Character-window chunker with overlap."""

from __future__ import annotations

from groundwork.ingest.base import BaseChunker, TextChunk


class CharacterChunker(BaseChunker):
    """Split text into fixed windows of ``max_chunk_size`` characters.

    Windows end at the last space before the limit when that leaves more than
    ``min_chunk_size`` characters, so words are not cut. Consecutive windows
    re-read ``chunk_overlap`` characters. Entity spans are not consulted.
    """

    def chunk(self, text: str) -> list[TextChunk]:
        opts = self.options
        chunks: list[TextChunk] = []
        length = len(text)
        start = 0

        while start < length:
            end = start + opts.max_chunk_size
            if end < length:
                last_space = text.rfind(" ", start, end + 1)
                if last_space > start + opts.min_chunk_size:
                    end = last_space
            else:
                end = length

            content = text[start:end].strip()
            if content and len(content) >= opts.min_chunk_size:
                chunks.append(
                    TextChunk(
                        content=content,
                        chunk_index=len(chunks),
                        start_char=start,
                        end_char=end,
                    )
                )

            if end >= length:
                break
            start = max(end - opts.chunk_overlap, start + 1)

        return chunks
