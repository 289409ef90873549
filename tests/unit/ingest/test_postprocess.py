"""Tests for chunk merging and overlap injection."""

from __future__ import annotations

from groundwork.ingest.base import TextChunk
from groundwork.ingest.postprocess import add_chunk_overlap, merge_small_chunks


def _chunks(*contents: str, page: int | None = None) -> list[TextChunk]:
    out = []
    pos = 0
    for i, content in enumerate(contents):
        out.append(TextChunk(content, i, pos, pos + len(content), page_number=page))
        pos += len(content) + 2
    return out


# ------------------------------------------------------------------
# merge_small_chunks
# ------------------------------------------------------------------


def test_merge_combines_adjacent_small_chunks():
    merged = merge_small_chunks(_chunks("a" * 10, "b" * 10, "c" * 10), max_chunk_size=25)
    assert [c.content for c in merged] == ["a" * 10 + "\n\n" + "b" * 10, "c" * 10]
    assert [c.chunk_index for c in merged] == [0, 1]
    assert merged[0].end_char == 22


def test_merge_is_idempotent():
    chunks = _chunks("alpha " * 5, "beta " * 8, "gamma " * 3, "delta " * 12, "eps")
    once = merge_small_chunks(chunks, max_chunk_size=70)
    twice = merge_small_chunks(once, max_chunk_size=70)
    assert [c.content for c in twice] == [c.content for c in once]


def test_merge_respects_page_boundaries():
    chunks = _chunks("page one", page=1) + _chunks("page two", page=2)
    merged = merge_small_chunks(chunks, max_chunk_size=1000)
    assert [c.page_number for c in merged] == [1, 2]


def test_merge_unions_entity_lists():
    chunks = _chunks("call 555-123-4567", "mail a@b.co")
    chunks[0].contains_entities = ["phone"]
    chunks[1].contains_entities = ["email", "phone"]
    merged = merge_small_chunks(chunks, max_chunk_size=1000)
    assert merged[0].contains_entities == ["phone", "email"]


def test_merge_does_not_mutate_input():
    chunks = _chunks("one", "two")
    merge_small_chunks(chunks, max_chunk_size=1000)
    assert [c.content for c in chunks] == ["one", "two"]


def test_merge_empty():
    assert merge_small_chunks([], max_chunk_size=100) == []


# ------------------------------------------------------------------
# add_chunk_overlap
# ------------------------------------------------------------------


def test_overlap_prefixes_tail_of_previous_chunk():
    chunks = _chunks("First sentence. Second part", "Next chunk")
    result = add_chunk_overlap(chunks, overlap_size=100)
    assert result[0].content == "First sentence. Second part"
    assert result[1].content == "Second partNext chunk"


def test_overlap_uses_last_characters():
    chunks = _chunks("abcdefghij", "klm")
    result = add_chunk_overlap(chunks, overlap_size=3)
    assert result[1].content == "hijklm"


def test_overlap_single_chunk_unchanged():
    chunks = _chunks("only")
    assert [c.content for c in add_chunk_overlap(chunks, 50)] == ["only"]


def test_overlap_never_starts_inside_an_entity():
    chunks = _chunks("Call 555-123-4567 now", "Next")
    result = add_chunk_overlap(chunks, overlap_size=8)
    assert result[1].content == " nowNext"


def test_overlap_keeps_entity_starting_at_tail():
    chunks = _chunks("Questions? Call 555-123-4567", "Next")
    result = add_chunk_overlap(chunks, overlap_size=12)
    assert result[1].content == "555-123-4567Next"
