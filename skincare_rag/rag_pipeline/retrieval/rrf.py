"""Reciprocal Rank Fusion for hybrid (dense + BM25) retrieval.

## RAG Theory: Rank-Based Fusion

Dense similarity and BM25 scores live on incompatible scales, so hybrid
retrieval merges the two lists by *position* instead of raw score. Each
hit contributes

    weight / (k + rank)

where rank is 1-based within its own list. Documents found by both
retrievers accumulate two contributions and rise to the top; k=60 damps
the advantage of the very first positions (Cormack et al., 2009).

## Library Usage

Pure Python. Results are Candidate records carrying the fused score and
the payload of the first list that returned the document.

## Data Flow

1. Walk list A, then list B, with an independent 1-based rank counter each
2. Accumulate weighted contributions per doc_id, keep first-seen payload
3. Sort by fused score descending, ties by doc_id ascending
4. Return RRFResult (results + merge metadata for logging)
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List

from skincare_rag.config import RRF_K
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)


@dataclass
class RRFResult:
    """Result of reciprocal rank fusion with logging metadata.

    Attributes:
        results: Fused candidates, best first, unique doc_ids.
        merge_time_ms: Time spent merging in milliseconds.
        source_counts: Unique doc_ids contributed by each input list.
        overlap_count: doc_ids present in both lists.
    """

    results: List[Candidate]
    merge_time_ms: float = 0.0
    source_counts: Dict[str, int] = field(default_factory=dict)
    overlap_count: int = 0


def _accumulate(
    ranked: List[Candidate],
    k: int,
    weight: float,
    first_seen: Dict[str, Candidate],
    scores: Dict[str, float],
) -> set:
    """Add one list's contributions. Returns the doc_ids it contained."""
    seen = set()
    # Blank doc_ids still consume a rank slot
    for rank, candidate in enumerate(ranked or [], start=1):
        doc_id = candidate.doc_id.strip()
        if not doc_id:
            continue
        first_seen.setdefault(doc_id, candidate)
        scores[doc_id] = scores.get(doc_id, 0.0) + weight * (1.0 / (k + rank))
        seen.add(doc_id)
    return seen


def reciprocal_rank_fusion(
    list_a: List[Candidate],
    list_b: List[Candidate],
    k: int = RRF_K,
    weight_a: float = 1.0,
    weight_b: float = 1.0,
) -> RRFResult:
    """Fuse two ranked lists by weighted reciprocal rank.

    Args:
        list_a: First ranked list (e.g., dense candidates), best first.
        list_b: Second ranked list (e.g., BM25 candidates), best first.
        k: RRF damping constant.
        weight_a: Multiplier for list_a contributions.
        weight_b: Multiplier for list_b contributions.

    Returns:
        RRFResult whose results are sorted by fused score descending,
        ties broken by ascending doc_id. Output is deterministic for
        identical inputs.

    Example:
        >>> a = [Candidate("d_a", 0.9), Candidate("d_b", 0.8)]
        >>> b = [Candidate("d_b", 7.1), Candidate("d_c", 3.2)]
        >>> [c.doc_id for c in fuse(a, b, 60, 1.0, 1.25)]
        ['d_b', 'd_c', 'd_a']
    """
    start = time.perf_counter()

    first_seen: Dict[str, Candidate] = {}
    scores: Dict[str, float] = {}
    ids_a = _accumulate(list_a, k, weight_a, first_seen, scores)
    ids_b = _accumulate(list_b, k, weight_b, first_seen, scores)

    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    results = [first_seen[doc_id].with_score(score) for doc_id, score in ordered]

    merge_time_ms = (time.perf_counter() - start) * 1000
    overlap = len(ids_a & ids_b)

    logger.info(
        "RRF merged %d + %d unique -> %d (overlap=%d, k=%d)",
        len(ids_a), len(ids_b), len(results), overlap, k,
    )

    return RRFResult(
        results=results,
        merge_time_ms=merge_time_ms,
        source_counts={"a": len(ids_a), "b": len(ids_b)},
        overlap_count=overlap,
    )


def fuse(
    list_a: List[Candidate],
    list_b: List[Candidate],
    k: int,
    weight_a: float,
    weight_b: float,
) -> List[Candidate]:
    """Fused ranking of two lists. See reciprocal_rank_fusion()."""
    return reciprocal_rank_fusion(list_a, list_b, k, weight_a, weight_b).results
