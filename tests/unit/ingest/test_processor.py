"""Tests for the ingestion pipeline (parse → chunk → filter → embed → persist)."""

from __future__ import annotations

import io
from unittest.mock import patch

import pypdf
import pytest

from groundwork.config import ChunkingCfg
from groundwork.db.models import KnowledgeSource, SourceStatus, SourceType
from groundwork.db.vectors import vec_table_for_model
from groundwork.ingest.parser import MARKDOWN_MIME, ParsedDocument
from groundwork.ingest.processor import (
    ProcessingOptions,
    chunk_content,
    format_qa_content,
    process_document,
    process_text,
    process_url,
    reprocess_knowledge_source,
)

OPTS = ProcessingOptions(max_chunk_size=200, min_chunk_size=10)

LEASING = (
    "The leasing office is open 9am-5pm, Monday through Friday.\n\n"
    "Contact us at 555-123-4567 or sales@example.com, located at 100 Main Street.\n\n"
    "Visitor parking is available behind building B. Residents park in the garage."
)


def _add(repo, id="src-1", type=SourceType.TEXT, **meta) -> str:
    repo.add_source(KnowledgeSource(id=id, name=f"{id}-name", type=type, metadata=meta))
    return id


def _vec_count(repo, embedder) -> int:
    table = vec_table_for_model(embedder.model)
    return repo.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


# ------------------------------------------------------------------
# Options
# ------------------------------------------------------------------


def test_options_from_config():
    opts = ProcessingOptions.from_config(ChunkingCfg(max_chunk_size=500, add_overlap=True))
    assert opts.max_chunk_size == 500
    assert opts.add_overlap


def test_qa_chunk_options_lower_minimum():
    opts = ProcessingOptions(min_chunk_size=100)
    assert opts.chunk_options().min_chunk_size == 100
    assert opts.chunk_options(qa=True).min_chunk_size == 10


# ------------------------------------------------------------------
# chunk_content: strategy selection
# ------------------------------------------------------------------


def test_plain_text_uses_entity_aware_paragraphs():
    chunks, strategy = chunk_content(LEASING, OPTS)
    assert strategy == "smart_paragraphs"
    assert any("555-123-4567" in c.content and "sales@example.com" in c.content for c in chunks)


def test_markdown_uses_sections():
    _, strategy = chunk_content("# Hours\n\nOpen daily from morning to night.", OPTS, mime_type=MARKDOWN_MIME)
    assert strategy == "smart_sections"


def test_detected_qa_structure_uses_qa_pairs():
    text = "Q: Pets?\nA: Yes, cats and dogs.\n\nQ: Parking?\nA: Free for residents."
    chunks, strategy = chunk_content(text, OPTS)
    assert strategy == "qa_pairs"
    assert len(chunks) == 2


def test_small_chunks_are_merged():
    text = "\n\n".join(["A short paragraph about the pool."] * 4)
    chunks, _ = chunk_content(text, ProcessingOptions(max_chunk_size=1000, min_chunk_size=10))
    assert len(chunks) == 1


def test_overlap_applied_when_enabled():
    text = "\n\n".join(f"Paragraph number {i} talks about amenities in detail." for i in range(6))
    opts = ProcessingOptions(max_chunk_size=120, min_chunk_size=10, chunk_overlap=20, add_overlap=True)
    plain, _ = chunk_content(text, ProcessingOptions(max_chunk_size=120, min_chunk_size=10))
    overlapped, _ = chunk_content(text, opts)
    assert len(overlapped) == len(plain) > 1
    assert overlapped[1].content.endswith(plain[1].content)
    assert len(overlapped[1].content) > len(plain[1].content)


# ------------------------------------------------------------------
# process_text
# ------------------------------------------------------------------


def test_process_text_stores_chunks_and_marks_ready(repo, fake_embedder):
    _add(repo)
    result = process_text(repo, fake_embedder, "src-1", LEASING, options=OPTS)

    assert result.success
    assert result.error is None
    source = repo.get_source("src-1")
    assert source.status == SourceStatus.READY
    assert source.metadata["chunk_count"] == result.chunk_count
    assert source.metadata["chunk_strategy"] == "smart_paragraphs"
    assert source.metadata["char_count"] == len(LEASING)
    assert source.metadata["poisoned_count"] == 0
    assert "processing_completed_at" in source.metadata
    assert repo.count_chunks_by_source("src-1") == result.chunk_count
    assert _vec_count(repo, fake_embedder) == result.chunk_count


def test_process_text_chunk_metadata(repo, fake_embedder):
    _add(repo)
    process_text(repo, fake_embedder, "src-1", LEASING, options=OPTS)
    chunks = repo.list_chunks("src-1")
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.metadata["chunk_index"] == c.chunk_index for c in chunks)
    contact = next(c for c in chunks if "555-123-4567" in c.content)
    assert "phone" in contact.metadata["contains_entities"]


def test_qa_source_uses_qa_strategy(repo, fake_embedder):
    _add(repo, type=SourceType.QA)
    content = format_qa_content("Do you allow pets?", "Yes, cats and dogs.")
    result = process_text(repo, fake_embedder, "src-1", content, options=OPTS)
    assert result.success
    assert repo.get_source("src-1").metadata["chunk_strategy"] == "qa_pairs"
    assert repo.list_chunks("src-1")[0].content == content


def test_poisoned_chunks_are_counted_not_stored(repo, fake_embedder):
    _add(repo)
    result = process_text(repo, fake_embedder, "src-1", "Lorem ipsum dolor sit amet, consectetur.", options=OPTS)
    assert result.success
    assert result.chunk_count == 0
    source = repo.get_source("src-1")
    assert source.status == SourceStatus.READY
    assert source.metadata["poisoned_count"] == 1
    assert fake_embedder.calls == []


def test_embedding_failure_marks_error_and_stores_nothing(repo, fake_embedder):
    _add(repo)
    with patch.object(fake_embedder, "embed_batch", side_effect=RuntimeError("rate limited")):
        result = process_text(repo, fake_embedder, "src-1", LEASING, options=OPTS)
    assert not result.success
    assert result.error == "rate limited"
    source = repo.get_source("src-1")
    assert source.status == SourceStatus.ERROR
    assert source.metadata["error_message"] == "rate limited"
    assert repo.count_chunks_by_source("src-1") == 0


def test_success_clears_previous_error(repo, fake_embedder):
    _add(repo)
    with patch.object(fake_embedder, "embed_batch", side_effect=RuntimeError("rate limited")):
        process_text(repo, fake_embedder, "src-1", LEASING, options=OPTS)
    assert repo.get_source("src-1").metadata["error_message"] == "rate limited"

    result = process_text(repo, fake_embedder, "src-1", LEASING, options=OPTS)
    assert result.success
    source = repo.get_source("src-1")
    assert source.status == SourceStatus.READY
    assert "error_message" not in source.metadata


def test_placeholder_paragraph_does_not_discard_real_text(repo, fake_embedder):
    _add(repo)
    text = (
        "The pool opens early every morning for all residents.\n\n"
        "N/A\n\n"
        "The fitness center never closes for residents and guests."
    )
    result = process_text(repo, fake_embedder, "src-1", text, options=OPTS)
    assert result.success
    assert result.chunk_count == 1
    assert repo.get_source("src-1").metadata["poisoned_count"] == 0
    assert "fitness center" in repo.list_chunks("src-1")[0].content


def test_missing_source(repo, fake_embedder):
    result = process_text(repo, fake_embedder, "nope", LEASING)
    assert not result.success
    assert result.error == "Knowledge source not found"


# ------------------------------------------------------------------
# process_document
# ------------------------------------------------------------------


def test_process_markdown_document(repo, fake_embedder):
    _add(repo, type=SourceType.MD)
    data = b"# Parking\n\nVisitor parking is behind building B.\n\n# Pool\n\nThe pool opens at 8am daily."
    result = process_document(repo, fake_embedder, "src-1", data, "guide.md", OPTS)
    assert result.success
    assert repo.get_source("src-1").metadata["chunk_strategy"] == "smart_sections"


def test_process_pdf_document_records_page_count(repo, fake_embedder):
    writer = pypdf.PdfWriter()
    writer.add_blank_page(width=72, height=72)
    writer.add_blank_page(width=72, height=72)
    buf = io.BytesIO()
    writer.write(buf)

    _add(repo, type=SourceType.PDF)
    result = process_document(repo, fake_embedder, "src-1", buf.getvalue(), "scan.pdf", OPTS)
    assert result.success
    assert result.chunk_count == 0
    source = repo.get_source("src-1")
    assert source.metadata["page_count"] == 2
    assert source.metadata["chunk_strategy"] == "pages"


def test_unsupported_document_marks_error(repo, fake_embedder):
    _add(repo, type=SourceType.DOCX)
    result = process_document(repo, fake_embedder, "src-1", b"PK...", "letter.docx", OPTS)
    assert not result.success
    assert "Unsupported file type" in result.error
    assert repo.get_source("src-1").status == SourceStatus.ERROR


# ------------------------------------------------------------------
# process_url / reprocess
# ------------------------------------------------------------------


def _parsed(text: str, title: str = "Leasing") -> ParsedDocument:
    return ParsedDocument(content=text, char_count=len(text), title=title)


def test_process_url_records_url(repo, fake_embedder):
    url = "https://example.com/leasing"
    _add(repo, type=SourceType.URL)
    with patch("groundwork.ingest.processor.parse_url", return_value=_parsed(LEASING)):
        result = process_url(repo, fake_embedder, "src-1", url, OPTS)
    assert result.success
    source = repo.get_source("src-1")
    assert source.metadata["url"] == url
    assert source.metadata["title"] == "Leasing"
    assert all(c.metadata["url"] == url for c in repo.list_chunks("src-1"))


def test_process_url_fetch_failure_marks_error(repo, fake_embedder):
    _add(repo, type=SourceType.URL)
    with patch("groundwork.ingest.processor.parse_url", side_effect=RuntimeError("Failed to fetch URL: 404 Not Found")):
        result = process_url(repo, fake_embedder, "src-1", "https://example.com/gone", OPTS)
    assert not result.success
    assert repo.get_source("src-1").metadata["error_message"] == "Failed to fetch URL: 404 Not Found"


def test_reprocess_url_source_replaces_chunks(repo, fake_embedder):
    url = "https://example.com/leasing"
    _add(repo, type=SourceType.URL, url=url)
    with patch("groundwork.ingest.processor.parse_url", return_value=_parsed(LEASING)):
        process_url(repo, fake_embedder, "src-1", url, OPTS)
    updated = "The leasing office has moved. It is now open 10am-6pm every weekday."
    with patch("groundwork.ingest.processor.parse_url", return_value=_parsed(updated)) as parse:
        result = reprocess_knowledge_source(repo, fake_embedder, "src-1", OPTS)

    assert result.success
    parse.assert_called_once()
    assert parse.call_args[0][0] == url
    assert [c.content for c in repo.list_chunks("src-1")] == [updated]
    assert _vec_count(repo, fake_embedder) == 1


def test_reprocess_text_source_refused_and_chunks_kept(repo, fake_embedder):
    _add(repo)
    process_text(repo, fake_embedder, "src-1", LEASING, options=OPTS)
    before = repo.count_chunks_by_source("src-1")

    result = reprocess_knowledge_source(repo, fake_embedder, "src-1", OPTS)

    assert not result.success
    assert result.error == "Cannot reprocess: original file not stored"
    assert repo.count_chunks_by_source("src-1") == before
    assert repo.get_source("src-1").status == SourceStatus.READY


def test_reprocess_missing_source(repo, fake_embedder):
    result = reprocess_knowledge_source(repo, fake_embedder, "nope")
    assert result.error == "Knowledge source not found"


# ------------------------------------------------------------------
# format_qa_content
# ------------------------------------------------------------------


def test_format_qa_content():
    assert format_qa_content(" Pets? ", "Yes.") == "Question: Pets?\n\nAnswer: Yes."
    assert format_qa_content("Pets?", "Yes.", ["Animals?", " ", "Dogs ok?"]) == (
        "Question: Pets?\n\nAnswer: Yes.\n\nAlternative phrasings: Animals?, Dogs ok?"
    )


@pytest.mark.parametrize("add_overlap", [False, True])
def test_chunk_indices_sequential_after_post_passes(add_overlap):
    text = "\n\n".join(f"Section {i} describes the building amenities at length." for i in range(10))
    opts = ProcessingOptions(max_chunk_size=150, min_chunk_size=10, add_overlap=add_overlap)
    chunks, _ = chunk_content(text, opts)
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))


# ------------------------------------------------------------------
# Entity atomicity end to end
# ------------------------------------------------------------------

CONTACT = "Contact us at 555-123-4567 or sales@example.com, located at 100 Main Street."
CONTACT_ENTITIES = {"555-123-4567": "555-123", "sales@example.com": "sales@", "100 Main Street": "100 Main"}


def test_contact_entities_survive_chunks_smaller_than_the_sentence(repo, fake_embedder):
    _add(repo)
    opts = ProcessingOptions(max_chunk_size=40, min_chunk_size=10)
    result = process_text(repo, fake_embedder, "src-1", CONTACT, options=opts)

    assert result.success
    contents = [c.content for c in repo.list_chunks("src-1")]
    assert len(contents) > 1
    for entity, fragment in CONTACT_ENTITIES.items():
        assert sum(entity in c for c in contents) == 1
        assert all(entity in c for c in contents if fragment in c)


def test_qa_preamble_entities_stay_whole():
    text = (
        "Our leasing office welcomes all visitors, find us at 100 Main Street Suite 5 downtown.\n\n"
        "Q: When open?\nA: Daily.\n\n"
        "Q: Pets?\nA: Yes, cats allowed."
    )
    chunks, strategy = chunk_content(text, ProcessingOptions(max_chunk_size=60, min_chunk_size=10))
    assert strategy == "qa_pairs"
    assert sum("100 Main Street Suite 5" in c.content for c in chunks) == 1
    assert not any(c.content.endswith("at 100") for c in chunks)
