"""Tests for QAChunker and Q&A structure detection."""

from __future__ import annotations

import pytest

from groundwork.ingest.base import ChunkOptions
from groundwork.ingest.qa import QA_MIN_CHUNK_SIZE, QA_PAIR_MARKER, QAChunker, detect_qa_structure

FAQ = (
    "Frequently asked questions about our apartments.\n\n"
    "Q: What are your office hours?\n"
    "A: 9am-5pm, Monday through Friday.\n\n"
    "Q: Do you allow pets?\n"
    "A: Yes.\n"
)


@pytest.mark.parametrize(
    "text",
    [
        "Q: one?\nA: yes\nQ: two?\nA: no",
        "Question 1: one?\nyes\n\nQuestion 2: two?\nno",
        "### Q: one?\nyes\n### Q: two?\nno",
        "**Q:** one?\nyes\n**Q:** two?\nno",
        "1. Q: one?\nyes\n2. Q: two?\nno",
    ],
)
def test_detect_qa_structure(text):
    assert detect_qa_structure(text)


def test_detect_qa_structure_needs_two_questions():
    assert not detect_qa_structure("Q: only one?\nA: yes")
    assert not detect_qa_structure("Plain prose with a Q in it.")


def test_qa_chunker_keeps_pairs_together():
    chunks = QAChunker(ChunkOptions(min_chunk_size=10)).chunk(FAQ)
    assert [c.content for c in chunks] == [
        "Frequently asked questions about our apartments.",
        "Q: What are your office hours?\nA: 9am-5pm, Monday through Friday.",
        "Q: Do you allow pets?\nA: Yes.",
    ]
    assert chunks[1].contains_entities == [QA_PAIR_MARKER]
    assert chunks[0].contains_entities is None
    assert [c.chunk_index for c in chunks] == [0, 1, 2]


def test_qa_chunker_never_splits_long_pair():
    answer = "A: " + "We take great care of every resident. " * 20
    text = f"Q: Tell me about your service?\n{answer}\n\nQ: Anything else?\nA: No."
    chunks = QAChunker(ChunkOptions(max_chunk_size=100, min_chunk_size=10)).chunk(text)
    assert len(chunks) == 2
    assert len(chunks[0].content) > 100


def test_qa_chunker_caps_min_chunk_size():
    chunker = QAChunker(ChunkOptions(min_chunk_size=100))
    assert chunker.options.min_chunk_size == QA_MIN_CHUNK_SIZE
    chunks = chunker.chunk("Q: Pets?\nA: Yes.\nQ: Parking?\nA: No.")
    assert len(chunks) == 2


def test_qa_chunker_offsets_point_into_text():
    chunks = QAChunker(ChunkOptions(min_chunk_size=10)).chunk(FAQ)
    for c in chunks:
        assert FAQ[c.start_char:c.end_char].strip() == c.content


def test_qa_preamble_keeps_entities_whole():
    text = (
        "Our leasing office welcomes all visitors, find us at 100 Main Street Suite 5 downtown.\n\n"
        "Q: When open?\nA: Daily.\n\n"
        "Q: Pets?\nA: Yes, cats allowed."
    )
    chunks = QAChunker(ChunkOptions(max_chunk_size=60, min_chunk_size=10)).chunk(text)

    preamble = [c for c in chunks if QA_PAIR_MARKER not in (c.contains_entities or [])]
    assert len(preamble) == 2
    assert sum("100 Main Street Suite 5" in c.content for c in preamble) == 1
    assert not any(c.content.endswith("at 100") for c in preamble)
    assert [c.content for c in chunks[-2:]] == ["Q: When open?\nA: Daily.", "Q: Pets?\nA: Yes, cats allowed."]
    assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]
