"""Soft document-type diversity for ranked results.

This module keeps the top results from collapsing onto a single document
type (e.g. five near-identical product pages) when a comparably scored
routine or ingredient document is available.

## Theory: Soft Diversity in RAG

Skincare questions are usually answered best by a mix of documents: a
product recommendation needs the routine that says when to apply it, and an
actives question needs the ingredient page. Dense and hybrid retrievers
tend to return whichever type dominates the embedding space.

The constraint here is *soft*: a document is only displaced by one of a
different type whose score is within `relative_delta` of it, and a slot is
never left empty. Strong single-type rankings survive unchanged.

## Library: dataclasses

Uses Python's built-in dataclasses for the result container. No external
dependencies needed since this is greedy selection over a sorted list.

## Data Flow

1. Receives scored Candidates (any order)
2. Drops candidates without doc_id, sorts by score desc / doc_id asc
3. Greedily fills top_k slots, substituting near-tied other-type candidates
   once a type reaches max_same_type
4. Returns DiversityResult with placed candidates and per-type counts
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from skincare_rag.config import DIVERSITY_MAX_SAME_TYPE, DIVERSITY_RELATIVE_DELTA
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)


@dataclass
class DiversityResult:
    """Result of type-aware reranking with logging metadata.

    Attributes:
        results: Reranked candidates (at most top_k).
        type_counts: Number of placed candidates per type.
        substitution_count: Slots where a different-type candidate replaced the best one.
        skipped_count: Candidates dropped for having no doc_id.
        original_count: Number of candidates before reranking.
    """

    results: List[Candidate]
    type_counts: Dict[str, int]
    substitution_count: int
    skipped_count: int
    original_count: int


def apply_type_diversity(
    candidates: List[Candidate],
    top_k: int,
    relative_delta: float = DIVERSITY_RELATIVE_DELTA,
    max_same_type: int = DIVERSITY_MAX_SAME_TYPE,
) -> DiversityResult:
    """Rerank candidates with a soft cap on same-type documents.

    Args:
        candidates: Scored Candidates (order is not relied upon).
        top_k: Maximum number of candidates to return.
        relative_delta: Allowed relative score drop for a substitute
            (0.1 = substitute must score at least 90% of the displaced one).
        max_same_type: Placed count of a type at which substitution is attempted.

    Returns:
        DiversityResult with up to top_k unique candidates.

    Algorithm:
        1. Drop blank doc_ids; sort by score desc, ties by doc_id asc
        2. Take the best unused candidate
        3. If its type already holds max_same_type placed slots,
           scan forward for the first unused candidate of another type
           with score >= best * (1 - relative_delta); stop at the first
           candidate below that floor
        4. Place the substitute if found, else the best candidate anyway
        5. Repeat until top_k placed or the pool is exhausted

    Example:
        >>> # products 0.90, 0.89, 0.88 then routine 0.85, max_same_type=2
        >>> # slot 3: products already hold 2 slots, routine 0.85 >= 0.88 * 0.9
        >>> # result: product 0.90, product 0.89, routine 0.85, product 0.88
    """
    original_count = len(candidates)
    pool = [c for c in candidates if c.doc_id.strip()]
    skipped = original_count - len(pool)
    if skipped:
        logger.debug("Type diversity: skipped %d candidates without doc_id", skipped)

    pool.sort(key=lambda c: (-c.score, c.doc_id))

    used_ids = set()
    type_counts: Dict[str, int] = {}
    results: List[Candidate] = []
    substitutions = 0

    while len(results) < top_k:
        best = _first_unused(pool, used_ids)
        if best is None:
            break

        chosen = best
        best_type = _type_of(best)
        if type_counts.get(best_type, 0) >= max_same_type:
            alternative = _find_alternative(pool, used_ids, best_type, best.score, relative_delta)
            if alternative is not None:
                chosen = alternative
                substitutions += 1

        used_ids.add(chosen.doc_id)
        chosen_type = _type_of(chosen)
        type_counts[chosen_type] = type_counts.get(chosen_type, 0) + 1
        results.append(chosen)

    logger.info(
        "Type diversity: %d -> %d (types=%s, substitutions=%d, skipped=%d)",
        original_count, len(results), type_counts, substitutions, skipped,
    )

    return DiversityResult(
        results=results,
        type_counts=type_counts,
        substitution_count=substitutions,
        skipped_count=skipped,
        original_count=original_count,
    )


def rerank(
    candidates: List[Candidate],
    top_k: int,
    relative_delta: float,
    max_same_type: int,
) -> List[Candidate]:
    """Reranked list only. See apply_type_diversity()."""
    return apply_type_diversity(candidates, top_k, relative_delta, max_same_type).results


def _type_of(candidate: Candidate) -> str:
    return candidate.type.strip().lower() or "unknown"


def _first_unused(pool: List[Candidate], used_ids: set) -> Optional[Candidate]:
    for candidate in pool:
        if candidate.doc_id not in used_ids:
            return candidate
    return None


def _find_alternative(
    pool: List[Candidate],
    used_ids: set,
    excluded_type: str,
    best_score: float,
    relative_delta: float,
) -> Optional[Candidate]:
    """First unused other-type candidate within relative_delta of best_score."""
    min_score = best_score * (1.0 - relative_delta)
    for candidate in pool:
        if candidate.doc_id in used_ids or _type_of(candidate) == excluded_type:
            continue
        # Pool is sorted desc: nothing after this can qualify
        if candidate.score < min_score:
            break
        return candidate
    return None
