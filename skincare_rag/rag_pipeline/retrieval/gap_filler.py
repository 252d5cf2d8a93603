"""Step-back gap filling for routine and ingredient documents.

## RAG Theory: Additive Gap Patching

HyDE and hybrid retrieval are good at surfacing the products a question is
about, but systematically under-retrieve two document types:

- **routine** documents for ordering/frequency/combination questions
- **ingredient** documents for questions naming active ingredients

The gap filler detects that a question structurally needs one of these
types, checks whether the current top-k already contains it, and only then
runs a secondary dense search on a step-back note. Patches are appended
*after* the existing ranking, so strong primary matches are never reordered
or displaced by the secondary pass.

## Library Usage

Uses the injected EmbeddingProvider, VectorSearch and TextGenerator
collaborators. No collaborator is called unless a gap is detected.

## Data Flow

1. Keyword detectors classify the question (rule / actives)
2. Inspect the first min(top_k, len) entries for routine / ingredient types
3. No gap -> return ranking unchanged (zero collaborator calls)
4. Generate step-back note; blank -> return ranking unchanged
5. Embed note, search 5 hits, keep only the needed types (patch candidates)
6. Spine + up to 2 new patch doc_ids, truncated to top_k
"""

from dataclasses import dataclass
from typing import List

from skincare_rag.config import COLLECTION_NAME, STEPBACK_MAX_PATCHES, STEPBACK_SEARCH_SIZE
from skincare_rag.rag_pipeline.collaborators import EmbeddingProvider, TextGenerator, VectorSearch
from skincare_rag.rag_pipeline.retrieval.preprocessing.query_classifier import (
    looks_like_actives_question,
    looks_like_rule_question,
)
from skincare_rag.rag_pipeline.retrieval.preprocessing.query_preprocessing import (
    generate_step_back_text,
)
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)


@dataclass
class GapAnalysis:
    """Which document types a ranking is missing for a question."""

    need_routine: bool
    need_ingredient: bool

    @property
    def has_gap(self) -> bool:
        return self.need_routine or self.need_ingredient

    def wanted_types(self) -> List[str]:
        wanted = []
        if self.need_routine:
            wanted.append("routine")
        if self.need_ingredient:
            wanted.append("ingredient")
        return wanted


def has_type_in_top_k(ranking: List[Candidate], top_k: int, expected_type: str) -> bool:
    """True if any of the first min(top_k, len) candidates has expected_type."""
    limit = min(top_k, len(ranking))
    expected = expected_type.lower()
    return any(c.type.strip().lower() == expected for c in ranking[:limit])


def analyze_gaps(question: str, ranking: List[Candidate], top_k: int) -> GapAnalysis:
    return GapAnalysis(
        need_routine=looks_like_rule_question(question)
        and not has_type_in_top_k(ranking, top_k, "routine"),
        need_ingredient=looks_like_actives_question(question)
        and not has_type_in_top_k(ranking, top_k, "ingredient"),
    )


def merge_patches(
    spine: List[Candidate],
    patches: List[Candidate],
    top_k: int,
    max_add: int = STEPBACK_MAX_PATCHES,
) -> List[Candidate]:
    """Append up to max_add new patch doc_ids after the spine, then truncate.

    Spine order is preserved; spine entries without doc_id (or repeating an
    earlier doc_id) are dropped.
    """
    merged: List[Candidate] = []
    seen = set()
    for candidate in spine:
        doc_id = candidate.doc_id.strip()
        if not doc_id or doc_id in seen:
            continue
        seen.add(doc_id)
        merged.append(candidate)

    added = 0
    for candidate in patches:
        if added >= max_add:
            break
        doc_id = candidate.doc_id.strip()
        if not doc_id or doc_id in seen:
            continue
        seen.add(doc_id)
        merged.append(candidate)
        added += 1

    return merged[:top_k]


class StepBackGapFiller:
    """Patches missing routine/ingredient documents into a ranking."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_search: VectorSearch,
        generator: TextGenerator,
        collection: str = COLLECTION_NAME,
        search_size: int = STEPBACK_SEARCH_SIZE,
        max_patches: int = STEPBACK_MAX_PATCHES,
    ):
        self.embedder = embedder
        self.vector_search = vector_search
        self.generator = generator
        self.collection = collection
        self.search_size = search_size
        self.max_patches = max_patches

    def fill(self, question: str, current_ranking: List[Candidate], top_k: int) -> List[Candidate]:
        """Return current_ranking with up to max_patches gap documents appended.

        Args:
            question: The original user question (not the HyDE rewrite).
            current_ranking: Ranking from primary retrieval, best first.
            top_k: Final result size.

        Returns:
            The input list itself when no gap is detected or the step-back
            note is blank; otherwise a new merged list of at most top_k.

        Raises:
            CollaboratorError: If generation, embedding or search fails.
        """
        gaps = analyze_gaps(question, current_ranking, top_k)
        if not gaps.has_gap:
            return current_ranking

        logger.info(f"Gap fill: missing {gaps.wanted_types()} in top-{top_k}")

        step_back = generate_step_back_text(question, self.generator)
        if not step_back:
            logger.warning("Skipping gap fill: empty step-back note")
            return current_ranking

        vector = self.embedder.embed(step_back)
        hits = self.vector_search.search(self.collection, vector, self.search_size)

        wanted = set(gaps.wanted_types())
        patches = [h for h in hits if h.type.strip().lower() in wanted]

        merged = merge_patches(current_ranking, patches, top_k, self.max_patches)
        spine_ids = {c.doc_id for c in current_ranking}
        added = [c.doc_id for c in merged if c.doc_id not in spine_ids]
        logger.info(
            f"Gap fill: {len(hits)} step-back hits, {len(patches)} patch candidates, "
            f"added {added}"
        )
        return merged
