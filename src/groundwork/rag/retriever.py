"""Hybrid retriever: BM25 (FTS5) + dense (sqlite-vec), fused via weighted RRF.

Query-type weighting:
  - The query is preprocessed (groundwork.rag.query) and classified
  - Unless the caller pins weights, the classification picks a preset:
    entity lookups lean on keywords, conceptual questions on vectors
  - The expanded query is embedded; the normalized query drives BM25

Reciprocal Rank Fusion:
  score(d) = w_vec / (k + rank_vec) + w_kw / (k + rank_kw)   k = 60
  A chunk missing from one list contributes 0 for that list.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from dataclasses import dataclass, field

from groundwork.db.repository import Repository, SearchHit
from groundwork.db.vectors import vec_table_exists, vec_table_for_model
from groundwork.ingest.embedder import Embedder
from groundwork.rag.query import PreprocessedQuery, keyword_search_query, preprocess_query

logger = logging.getLogger(__name__)

RRF_K = 60

# query type → (vector weight, keyword weight)
WEIGHT_PRESETS: dict[str, tuple[float, float]] = {
    "entity": (0.3, 0.7),
    "conceptual": (0.8, 0.2),
    "mixed": (0.5, 0.5),
    "unknown": (0.6, 0.4),
}

SEARCH_MODES = ("hybrid", "vector", "keyword")


@dataclass
class RetrieverConfig:
    """Configuration for the hybrid retriever.

    Attributes:
        mode: Retrieval mode: 'hybrid' (BM25 + dense), 'vector', or 'keyword'.
        top_k: Maximum number of chunks to return after fusion.
        rrf_k: RRF smoothing constant.
        candidate_multiplier: Each leg fetches ``top_k * candidate_multiplier`` candidates.
        vector_weight: Pinned vector weight; None selects a preset by query type.
        keyword_weight: Pinned keyword weight; None selects a preset by query type.
    """

    mode: str = "hybrid"            # hybrid | vector | keyword
    top_k: int = 5
    rrf_k: int = RRF_K
    candidate_multiplier: int = 4
    vector_weight: float | None = None
    keyword_weight: float | None = None

    def __post_init__(self) -> None:
        if self.mode not in SEARCH_MODES:
            raise ValueError(f"mode must be one of {', '.join(SEARCH_MODES)}; got {self.mode!r}")
        if self.top_k < 1:
            raise ValueError("top_k must be >= 1")

    @classmethod
    def from_config(cls, cfg, **overrides) -> RetrieverConfig:
        """Build a retriever config from a ``RetrievalCfg`` section."""
        values = {
            "mode": cfg.mode,
            "top_k": cfg.top_k,
            "rrf_k": cfg.rrf_k,
            "candidate_multiplier": cfg.candidate_multiplier,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def candidate_limit(self) -> int:
        return self.top_k * self.candidate_multiplier

    def weights_for(self, query_type: str) -> tuple[float, float]:
        """Pinned weights if either is set, else the preset for *query_type*."""
        if self.vector_weight is None and self.keyword_weight is None:
            return WEIGHT_PRESETS.get(query_type, WEIGHT_PRESETS["unknown"])
        preset_vec, preset_kw = WEIGHT_PRESETS["unknown"]
        return (
            preset_vec if self.vector_weight is None else self.vector_weight,
            preset_kw if self.keyword_weight is None else self.keyword_weight,
        )


@dataclass
class RetrievedChunk:
    """A retrieved chunk with its fused score and per-leg ranks (1-based)."""

    chunk_id: str
    knowledge_source_id: str
    knowledge_source_name: str
    content: str
    score: float
    metadata: dict = field(default_factory=dict)
    vector_rank: int | None = None
    keyword_rank: int | None = None
    vector_score: float | None = None
    keyword_score: float | None = None

    @property
    def page_number(self) -> int | None:
        return self.metadata.get("page_number")


@dataclass
class RagContext:
    chunks: list[RetrievedChunk] = field(default_factory=list)
    total_tokens_estimate: int = 0
    query: PreprocessedQuery | None = None


def retrieve_context(
    query: str,
    repo: Repository,
    embedder: Embedder,
    config: RetrieverConfig | None = None,
) -> RagContext:
    """Retrieve the chunks most relevant to *query*, best-first.

    Only chunks of ``ready`` sources are considered. An empty result is a
    valid answer meaning "no relevant context".

    Raises:
        sqlite3.Error: If the store is unreachable (the keyword leg alone
            degrades to vector-only instead).
    """
    cfg = config or RetrieverConfig()
    pq = preprocess_query(query)
    if not pq.original:
        return RagContext(query=pq)

    vector_weight, keyword_weight = cfg.weights_for(pq.query_type)
    vec_table = vec_table_for_model(embedder.model)
    has_vectors = vec_table_exists(repo.connection, vec_table)

    def vector_leg() -> list[SearchHit]:
        if not has_vectors:
            return []
        embedding = embedder.embed_query(pq.expanded)
        return repo.search_vec(vec_table, embedding, limit=cfg.candidate_limit)

    if cfg.mode == "keyword":
        hits = repo.search_fts(keyword_search_query(pq), limit=cfg.top_k)
        results = _single_leg(hits, "keyword")
    elif cfg.mode == "vector":
        results = _single_leg(vector_leg()[: cfg.top_k], "vector")
    else:
        vector_hits = vector_leg()
        try:
            keyword_hits = repo.search_fts(keyword_search_query(pq), limit=cfg.candidate_limit)
        except sqlite3.OperationalError as exc:
            logger.warning("Keyword search unavailable, falling back to vector-only: %s", exc)
            results = _single_leg(vector_hits[: cfg.top_k], "vector")
        else:
            results = rrf_fuse(
                vector_hits,
                keyword_hits,
                vector_weight=vector_weight,
                keyword_weight=keyword_weight,
                top_k=cfg.top_k,
                k=cfg.rrf_k,
            )

    total_chars = sum(len(r.content) for r in results)
    context = RagContext(
        chunks=results,
        total_tokens_estimate=math.ceil(total_chars / 4),
        query=pq,
    )

    logger.debug(
        "Retrieved %d chunks for %s query",
        len(results),
        pq.query_type,
        extra={
            "query": pq.original[:100],
            "query_type": pq.query_type,
            "vector_weight": vector_weight,
            "keyword_weight": keyword_weight,
            "mode": cfg.mode,
            "top_scores": [round(r.score, 6) for r in results[:5]],
        },
    )
    return context


# ------------------------------------------------------------------
# RRF fusion
# ------------------------------------------------------------------


def rrf_fuse(
    vector_hits: list[SearchHit],
    keyword_hits: list[SearchHit],
    vector_weight: float,
    keyword_weight: float,
    top_k: int,
    k: int = RRF_K,
) -> list[RetrievedChunk]:
    """Combine two ranked lists via weighted Reciprocal Rank Fusion.

    score(d) = w_vec/(k + rank_vec) + w_kw/(k + rank_kw), missing rank → 0.
    Chunks with a fused score of 0 are dropped. Ties keep first-seen order
    (vector list first).
    """
    fused: dict[str, RetrievedChunk] = {}

    for rank, hit in enumerate(vector_hits, start=1):
        item = fused.setdefault(hit.chunk.id, _to_retrieved(hit))
        item.vector_rank = rank
        item.vector_score = hit.score

    for rank, hit in enumerate(keyword_hits, start=1):
        item = fused.setdefault(hit.chunk.id, _to_retrieved(hit))
        item.keyword_rank = rank
        item.keyword_score = hit.score

    for item in fused.values():
        score = 0.0
        if item.vector_rank is not None:
            score += vector_weight / (k + item.vector_rank)
        if item.keyword_rank is not None:
            score += keyword_weight / (k + item.keyword_rank)
        item.score = score

    ranked = sorted((i for i in fused.values() if i.score > 0), key=lambda i: i.score, reverse=True)
    return ranked[:top_k]


def _single_leg(hits: list[SearchHit], leg: str) -> list[RetrievedChunk]:
    """Rank one leg alone; its own similarity score is the final score."""
    results = []
    for rank, hit in enumerate(hits, start=1):
        item = _to_retrieved(hit)
        item.score = hit.score
        if leg == "vector":
            item.vector_rank, item.vector_score = rank, hit.score
        else:
            item.keyword_rank, item.keyword_score = rank, hit.score
        results.append(item)
    return results


def _to_retrieved(hit: SearchHit) -> RetrievedChunk:
    return RetrievedChunk(
        chunk_id=hit.chunk.id,
        knowledge_source_id=hit.chunk.knowledge_source_id,
        knowledge_source_name=hit.source_name,
        content=hit.chunk.content,
        score=0.0,
        metadata=dict(hit.chunk.metadata),
    )
