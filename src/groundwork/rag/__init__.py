"""Groundwork retrieval — query preprocessing, hybrid search, prompt context."""

from groundwork.rag.context import (
    augment_system_prompt,
    extract_rag_metadata,
    extract_user_query,
    format_context_for_prompt,
)
from groundwork.rag.query import PreprocessedQuery, preprocess_query
from groundwork.rag.retriever import RagContext, RetrievedChunk, RetrieverConfig, retrieve_context

__all__ = [
    "PreprocessedQuery",
    "RagContext",
    "RetrievedChunk",
    "RetrieverConfig",
    "augment_system_prompt",
    "extract_rag_metadata",
    "extract_user_query",
    "format_context_for_prompt",
    "preprocess_query",
    "retrieve_context",
]
