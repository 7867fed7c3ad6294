"""Hybrid ranking over workspace items using Reciprocal Rank Fusion.

Two ranked candidate lists are fetched from storage (full-text relevance and
cosine distance) and fused here:

    fused_score = w_lex / (rrf_k + lexical_rank) + w_vec / (rrf_k + vector_rank)

The fusion is an outer join: an item found by only one source keeps its single
nonzero term. A source that fails or is skipped contributes nothing.
"""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from spark_engine.core.config import get_settings
from spark_engine.core.logging import get_logger
from spark_engine.db.items import match_items, rank_items_lexical, rank_items_vector

logger = get_logger(__name__)


@dataclass
class RankedHit:
    """One row of a single-source ranking (rank is 1-based)."""

    item_id: str
    rank: int
    similarity: float | None = None


@dataclass
class RetrievalCandidate:
    """A fused candidate. Lives only for one retrieval call."""

    item_id: str
    fused_score: float
    lexical_rank: int | None = None
    vector_rank: int | None = None
    similarity: float | None = None


def rrf_term(rank: int | None, weight: float, rrf_k: int) -> float:
    """One source's contribution; a missing rank contributes 0."""
    if rank is None:
        return 0.0
    return weight / (rrf_k + rank)


def fuse_rankings(
    lexical: list[RankedHit],
    vector: list[RankedHit],
    k: int,
    rrf_k: int = 50,
    lexical_weight: float = 1.0,
    vector_weight: float = 1.0,
) -> list[RetrievalCandidate]:
    """
    Fuse two rankings with RRF.

    Args:
        lexical: Full-text ranking (best first)
        vector: Vector-similarity ranking (best first)
        k: Number of candidates to return
        rrf_k: Damping constant
        lexical_weight: Weight of the full-text term
        vector_weight: Weight of the vector term

    Returns:
        Up to k candidates, descending by fused_score
    """
    candidates: dict[str, RetrievalCandidate] = {}

    for hit in lexical:
        cand = candidates.setdefault(hit.item_id, RetrievalCandidate(hit.item_id, 0.0))
        # Keep the best rank if a source repeats an id
        if cand.lexical_rank is None or hit.rank < cand.lexical_rank:
            cand.lexical_rank = hit.rank

    for hit in vector:
        cand = candidates.setdefault(hit.item_id, RetrievalCandidate(hit.item_id, 0.0))
        if cand.vector_rank is None or hit.rank < cand.vector_rank:
            cand.vector_rank = hit.rank
            cand.similarity = hit.similarity

    for cand in candidates.values():
        cand.fused_score = rrf_term(cand.lexical_rank, lexical_weight, rrf_k) + rrf_term(
            cand.vector_rank, vector_weight, rrf_k
        )

    # Stable tiebreak on the best source rank, then id
    ordered = sorted(
        candidates.values(),
        key=lambda c: (
            -c.fused_score,
            min(r for r in (c.lexical_rank, c.vector_rank) if r is not None),
            c.item_id,
        ),
    )
    return ordered[:k]


def _to_hits(rows: list[dict[str, Any]]) -> list[RankedHit]:
    hits = []
    for position, row in enumerate(rows, start=1):
        item_id = row.get("id")
        if not item_id:
            continue
        rank = row.get("rank_ix") or position
        hits.append(RankedHit(item_id=str(item_id), rank=int(rank), similarity=row.get("similarity")))
    return hits


def candidate_cap(k: int) -> int:
    """Per-source candidate count: min(k, cap) * 2."""
    return min(k, get_settings().RRF_CANDIDATE_CAP) * 2


def search(
    workspace_id: UUID | str,
    query_text: str,
    query_vector: list[float] | None,
    k: int,
) -> list[RetrievalCandidate]:
    """
    Hybrid search over a workspace's items.

    Each source is queried independently; an unavailable source (or a missing
    query vector) degrades its contribution to zero rather than failing.
    """
    settings = get_settings()
    if k <= 0:
        return []
    cap = candidate_cap(k)

    lexical: list[RankedHit] = []
    if query_text and query_text.strip():
        try:
            lexical = _to_hits(rank_items_lexical(workspace_id, query_text, cap))
        except Exception as e:
            logger.warning(f"Lexical ranking unavailable for workspace {workspace_id}: {e}")

    vector: list[RankedHit] = []
    if query_vector:
        try:
            vector = _to_hits(rank_items_vector(workspace_id, query_vector, cap))
        except Exception as e:
            logger.warning(f"Vector ranking unavailable for workspace {workspace_id}: {e}")

    fused = fuse_rankings(
        lexical,
        vector,
        k=k,
        rrf_k=settings.RRF_K,
        lexical_weight=settings.RRF_FULL_TEXT_WEIGHT,
        vector_weight=settings.RRF_SEMANTIC_WEIGHT,
    )
    logger.debug(
        f"Hybrid search: {len(lexical)} lexical, {len(vector)} vector -> {len(fused)} fused"
    )
    return fused


def threshold_search(
    workspace_id: UUID | str,
    query_vector: list[float],
    threshold: float,
    limit: int,
) -> list[dict[str, Any]]:
    """Vector-only search: rows with similarity = 1 - cosine_distance > threshold."""
    rows = match_items(workspace_id, query_vector, threshold, limit)
    # Enforce the strict bound regardless of how the RPC compares
    return [r for r in rows if (r.get("similarity") or 0.0) > threshold]
