"""Groundwork ingest pipeline — parsers, chunkers, embedder, processor."""

from groundwork.ingest.base import BaseChunker, ChunkOptions, TextChunk
from groundwork.ingest.character import CharacterChunker
from groundwork.ingest.embedder import Embedder
from groundwork.ingest.pages import PageAwareChunker
from groundwork.ingest.paragraph import EntityAwareChunker, ParagraphChunker
from groundwork.ingest.processor import (
    ProcessingOptions,
    ProcessingResult,
    process_document,
    process_text,
    process_url,
    reprocess_knowledge_source,
)
from groundwork.ingest.qa import QAChunker
from groundwork.ingest.sections import SectionChunker

__all__ = [
    "BaseChunker",
    "CharacterChunker",
    "ChunkOptions",
    "Embedder",
    "EntityAwareChunker",
    "PageAwareChunker",
    "ParagraphChunker",
    "ProcessingOptions",
    "ProcessingResult",
    "QAChunker",
    "SectionChunker",
    "TextChunk",
    "process_document",
    "process_text",
    "process_url",
    "reprocess_knowledge_source",
]
