"""Post-processing passes over chunker output."""

from __future__ import annotations

from dataclasses import replace

from groundwork.ingest.base import TextChunk
from groundwork.ingest.entities import find_entity_spans

_SEPARATOR = "\n\n"


def merge_small_chunks(chunks: list[TextChunk], max_chunk_size: int) -> list[TextChunk]:
    """Greedily merge adjacent chunks while the combined text fits *max_chunk_size*.

    Chunks on different pages are never merged. Running the pass again on
    its own output is a no-op. Returns new chunks; the input is not mutated.
    """
    merged: list[TextChunk] = []
    current: TextChunk | None = None

    for chunk in chunks:
        if current is None:
            current = replace(chunk)
            continue

        combined = len(current.content) + len(_SEPARATOR) + len(chunk.content)
        if combined <= max_chunk_size and current.page_number == chunk.page_number:
            entities = list(current.contains_entities or [])
            for e in chunk.contains_entities or []:
                if e not in entities:
                    entities.append(e)
            current = replace(
                current,
                content=f"{current.content}{_SEPARATOR}{chunk.content}",
                end_char=chunk.end_char,
                contains_entities=entities or None,
            )
        else:
            merged.append(current)
            current = replace(chunk)

    if current is not None:
        merged.append(current)

    for i, c in enumerate(merged):
        c.chunk_index = i
    return merged


def add_chunk_overlap(chunks: list[TextChunk], overlap_size: int = 100) -> list[TextChunk]:
    """Prefix each chunk after the first with the tail of its predecessor.

    The tail is the last *overlap_size* characters of the previous chunk,
    trimmed to start after its last ``". "`` when there is one. A tail
    never starts inside an entity: the start moves forward past it.
    """
    if len(chunks) <= 1 or overlap_size <= 0:
        return list(chunks)

    result = [chunks[0]]
    for prev, chunk in zip(chunks, chunks[1:]):
        tail = _overlap_tail(prev.content, overlap_size)
        result.append(replace(chunk, content=f"{tail}{chunk.content}"))
    return result


def _overlap_tail(content: str, overlap_size: int) -> str:
    cut = max(len(content) - overlap_size, 0)
    last_sentence = content.rfind(". ", cut)
    if last_sentence > cut:
        cut = last_sentence + 2
    for span in find_entity_spans(content):
        if span.start < cut < span.end:
            cut = span.end
    return content[cut:]
