"""Ingestion pipeline: parse → chunk → filter → embed → persist.

Each ``process_*`` entry point moves one knowledge source through
``processing`` to ``ready`` or ``error``. Failures are recorded on the
source and returned in a ``ProcessingResult``; they are never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from groundwork.db.models import DocumentChunk, SourceStatus, SourceType
from groundwork.db.repository import Repository
from groundwork.db.vectors import ensure_vec_table
from groundwork.ingest.base import ChunkOptions, TextChunk
from groundwork.ingest.embedder import Embedder
from groundwork.ingest.pages import PageAwareChunker
from groundwork.ingest.paragraph import EntityAwareChunker
from groundwork.ingest.parser import (
    MARKDOWN_MIME,
    PDF_MIME,
    ParsedDocument,
    UnsupportedFileTypeError,
    detect_mime_type,
    parse_document,
    parse_text,
    parse_url,
)
from groundwork.ingest.poison import filter_poisoned_chunks
from groundwork.ingest.postprocess import add_chunk_overlap, merge_small_chunks
from groundwork.ingest.qa import QA_MIN_CHUNK_SIZE, QA_PAIR_MARKER, QAChunker, detect_qa_structure
from groundwork.ingest.scraper import FetchOptions
from groundwork.ingest.sections import SectionChunker

logger = logging.getLogger(__name__)

REPROCESSABLE_TYPES = (SourceType.URL, SourceType.WEBSITE)


@dataclass
class ProcessingOptions:
    """Chunking options for one ingestion run (see ``ChunkingCfg``)."""

    max_chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    preserve_entities: bool = True
    entity_padding: int = 50
    add_overlap: bool = False
    qa_min_chunk_size: int = QA_MIN_CHUNK_SIZE

    @classmethod
    def from_config(cls, cfg) -> ProcessingOptions:
        """Build options from a ``ChunkingCfg`` section."""
        return cls(
            max_chunk_size=cfg.max_chunk_size,
            chunk_overlap=cfg.chunk_overlap,
            min_chunk_size=cfg.min_chunk_size,
            preserve_entities=cfg.preserve_entities,
            entity_padding=cfg.entity_padding,
            add_overlap=cfg.add_overlap,
            qa_min_chunk_size=cfg.qa_min_chunk_size,
        )

    def chunk_options(self, qa: bool = False) -> ChunkOptions:
        return ChunkOptions(
            max_chunk_size=self.max_chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=min(self.min_chunk_size, self.qa_min_chunk_size) if qa else self.min_chunk_size,
            preserve_entities=self.preserve_entities,
            entity_padding=self.entity_padding,
        )


@dataclass
class ProcessingResult:
    success: bool
    chunk_count: int | None = None
    error: str | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def process_document(
    repo: Repository,
    embedder: Embedder,
    source_id: str,
    data: bytes,
    filename: str,
    options: ProcessingOptions | None = None,
) -> ProcessingResult:
    """Ingest an uploaded file (PDF, TXT or Markdown) into *source_id*."""

    def parse() -> tuple[ParsedDocument, str | None]:
        mime_type = detect_mime_type(filename)
        if mime_type is None:
            raise UnsupportedFileTypeError(f"Unsupported file type: {filename}")
        return parse_document(data, mime_type), mime_type

    return _run(repo, embedder, source_id, parse, options)


def process_text(
    repo: Repository,
    embedder: Embedder,
    source_id: str,
    text: str,
    *,
    filename: str = "content.txt",
    options: ProcessingOptions | None = None,
) -> ProcessingResult:
    """Ingest pasted text (or a formatted Q&A entry) like a ``.txt`` upload."""

    def parse() -> tuple[ParsedDocument, str | None]:
        return parse_text(text.encode("utf-8")), detect_mime_type(filename)

    return _run(repo, embedder, source_id, parse, options)


def process_url(
    repo: Repository,
    embedder: Embedder,
    source_id: str,
    url: str,
    options: ProcessingOptions | None = None,
    fetch_options: FetchOptions | None = None,
) -> ProcessingResult:
    """Fetch *url* and ingest its content into *source_id*.

    The URL is recorded in the metadata of the source and of every chunk.
    """

    def parse() -> tuple[ParsedDocument, str | None]:
        return parse_url(url, fetch_options), None

    return _run(repo, embedder, source_id, parse, options, url=url)


def reprocess_knowledge_source(
    repo: Repository,
    embedder: Embedder,
    source_id: str,
    options: ProcessingOptions | None = None,
    fetch_options: FetchOptions | None = None,
) -> ProcessingResult:
    """Purge the chunks of a URL source and ingest its URL again.

    Sources created from uploads or pasted text cannot be reprocessed because
    their raw content is not retained; their existing chunks are left alone.
    """
    source = repo.get_source(source_id)
    if source is None:
        return ProcessingResult(success=False, error="Knowledge source not found")

    url = source.metadata.get("url")
    if source.type not in REPROCESSABLE_TYPES or not url:
        return ProcessingResult(
            success=False, error="Cannot reprocess: original file not stored"
        )

    removed = repo.delete_chunks_by_source(source_id)
    logger.info("Reprocessing %s: removed %d old chunks", source_id, removed)
    return process_url(repo, embedder, source_id, url, options, fetch_options)


def format_qa_content(question: str, answer: str, variations: list[str] | None = None) -> str:
    """Render a Q&A entry as the text ingested for a ``qa`` source."""
    content = f"Question: {question.strip()}\n\nAnswer: {answer.strip()}"
    extra = [v.strip() for v in variations or [] if v.strip()]
    if extra:
        content += f"\n\nAlternative phrasings: {', '.join(extra)}"
    return content


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def _run(
    repo: Repository,
    embedder: Embedder,
    source_id: str,
    parse,
    options: ProcessingOptions | None,
    url: str | None = None,
) -> ProcessingResult:
    source = repo.get_source(source_id)
    if source is None:
        return ProcessingResult(success=False, error="Knowledge source not found")

    opts = options or ProcessingOptions()
    try:
        repo.update_source(
            source_id,
            status=SourceStatus.PROCESSING,
            metadata={"processing_started_at": _now()},
        )

        parsed, mime_type = parse()
        has_faq = source.type == SourceType.QA or parsed.has_faq_structure
        chunks, strategy = chunk_content(parsed.content, opts, mime_type=mime_type, qa=has_faq)

        chunks, poisoned = filter_poisoned_chunks(chunks)
        with_entities = sum(
            1 for c in chunks if c.contains_entities and QA_PAIR_MARKER not in c.contains_entities
        )
        logger.info(
            "Processing %s [%s]: %d chars -> %d chunks (%d with entities, %d poisoned discarded)",
            source.type.value,
            strategy,
            len(parsed.content),
            len(chunks),
            with_entities,
            poisoned,
        )

        _store_chunks(repo, embedder, source_id, chunks, url=url)

        metadata = parsed.metadata()
        metadata.update(
            chunk_count=len(chunks),
            chunk_strategy=strategy,
            poisoned_count=poisoned,
            processing_completed_at=_now(),
            error_message=None,
        )
        if url:
            metadata["url"] = url
        repo.update_source(source_id, status=SourceStatus.READY, metadata=metadata)
        return ProcessingResult(success=True, chunk_count=len(chunks))

    except Exception as exc:
        message = str(exc) or type(exc).__name__
        logger.error("Processing failed for %s: %s", source_id, message)
        repo.update_source(
            source_id, status=SourceStatus.ERROR, metadata={"error_message": message}
        )
        return ProcessingResult(success=False, error=message)


def chunk_content(
    text: str,
    options: ProcessingOptions,
    *,
    mime_type: str | None = None,
    qa: bool = False,
) -> tuple[list[TextChunk], str]:
    """Pick a chunking strategy for *text* and run it with the post-passes.

    Returns:
        The chunks and the name of the strategy used.
    """
    if qa or detect_qa_structure(text):
        # Q&A pairs are atomic: no merge, no overlap.
        return QAChunker(options.chunk_options(qa=True)).chunk(text), "qa_pairs"

    chunk_opts = options.chunk_options()
    if mime_type == MARKDOWN_MIME:
        chunks, strategy = SectionChunker(chunk_opts).chunk(text), "smart_sections"
    elif mime_type == PDF_MIME:
        chunks, strategy = PageAwareChunker(chunk_opts).chunk(text), "pages"
    else:
        chunks, strategy = EntityAwareChunker(chunk_opts).chunk(text), "smart_paragraphs"

    chunks = merge_small_chunks(chunks, chunk_opts.max_chunk_size)
    if options.add_overlap:
        chunks = add_chunk_overlap(chunks, chunk_opts.chunk_overlap)
    return chunks, strategy


def _store_chunks(
    repo: Repository,
    embedder: Embedder,
    source_id: str,
    chunks: list[TextChunk],
    url: str | None = None,
) -> None:
    """Embed *chunks* and insert them in one transaction; nothing is stored on failure."""
    if not chunks:
        return

    embeddings = embedder.embed_batch([c.content for c in chunks])
    vec_table = ensure_vec_table(repo.connection, embedder.model, len(embeddings[0]))

    records = []
    for chunk in chunks:
        metadata = chunk.to_metadata()
        if url:
            metadata["url"] = url
        records.append(
            DocumentChunk(
                knowledge_source_id=source_id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                metadata=metadata,
            )
        )
    repo.add_chunks(records, embeddings=embeddings, vec_table=vec_table)
