"""Retrieval orchestration: one entry point for every retrieval mode.

## RAG Theory: Composing Retrieval Stages

A retrieval request runs up to four stages, each switched on by the
resolved Mode:

1. **Dense text selection** - raw question, or a HyDE note for rewrite modes
2. **Candidate retrieval** - dense-only top-k, or dense top-25 + BM25 top-25
   fused with weighted RRF (BM25 weighted 1.25 so exact names win ties)
3. **Gap fill** - step-back patching of missing routine/ingredient docs,
   classified on the *original* question
4. **Truncate** to top-k

BM25 always runs on the raw question: HyDE notes are written for embedding
similarity and dilute the exact product/ingredient terms lexical search
relies on.

## Library Usage

Pure composition over injected collaborators. Collaborator errors propagate
unchanged (no retries); a blank HyDE note is the only recoverable condition.

## Data Flow

1. resolve_mode() -> capability flags
2. preprocess() -> dense text and strategy
3. _retrieve_candidates() -> dense list or RRF-fused list
4. (optional) type-aware reranking of the candidate pool
5. StepBackGapFiller.fill() for gap-fill modes
6. Truncated List[Candidate]
"""

import time
from typing import List, Optional, Union

from skincare_rag.config import (
    BM25_TOP_N,
    BM25_WEIGHT,
    COLLECTION_NAME,
    DEFAULT_TOP_K,
    DENSE_TOP_N,
    DENSE_WEIGHT,
    DIVERSITY_MAX_SAME_TYPE,
    DIVERSITY_RELATIVE_DELTA,
    RRF_K,
)
from skincare_rag.rag_pipeline.collaborators import (
    EmbeddingProvider,
    LexicalSearch,
    TextGenerator,
    VectorSearch,
)
from skincare_rag.rag_pipeline.retrieval.diversification import apply_type_diversity
from skincare_rag.rag_pipeline.retrieval.gap_filler import StepBackGapFiller
from skincare_rag.rag_pipeline.retrieval.modes import Mode, resolve_mode
from skincare_rag.rag_pipeline.retrieval.preprocessing.query_preprocessing import (
    PreprocessedQuery,
    rewrite_query,
)
from skincare_rag.rag_pipeline.retrieval.rrf import reciprocal_rank_fusion
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)


class RetrievalOrchestrator:
    """Runs the retrieval pipeline for a question under a given mode.

    Holds only references to stateless collaborators; safe to call from
    several threads as long as the collaborators are.

    Args:
        embedder: Embeds dense text and step-back notes.
        vector_search: Dense similarity search.
        generator: HyDE and step-back note generation.
        lexical_search: BM25 search; required only for hybrid modes.
        collection: Vector collection name.
        type_diversity: Apply type-aware reranking to the candidate pool.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_search: VectorSearch,
        generator: TextGenerator,
        lexical_search: Optional[LexicalSearch] = None,
        collection: str = COLLECTION_NAME,
        type_diversity: bool = False,
        relative_delta: float = DIVERSITY_RELATIVE_DELTA,
        max_same_type: int = DIVERSITY_MAX_SAME_TYPE,
    ):
        self.embedder = embedder
        self.vector_search = vector_search
        self.generator = generator
        self.lexical_search = lexical_search
        self.collection = collection
        self.type_diversity = type_diversity
        self.relative_delta = relative_delta
        self.max_same_type = max_same_type
        self.gap_filler = StepBackGapFiller(
            embedder=embedder,
            vector_search=vector_search,
            generator=generator,
            collection=collection,
        )

    def rewrite(self, question: str) -> PreprocessedQuery:
        """HyDE note for the question, or the question itself if blank."""
        return rewrite_query(question, self.generator)

    def preprocess(self, question: str, mode: Mode) -> PreprocessedQuery:
        """Dense retrieval text for the mode, with the strategy that chose it."""
        if mode.uses_rewrite:
            return self.rewrite(question)
        return PreprocessedQuery(original_query=question, search_query=question)

    def retrieve(
        self,
        question: str,
        mode: Union[str, Mode, None] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> List[Candidate]:
        """Retrieve the final ranking for a question.

        Args:
            question: User question (must be non-empty).
            mode: Mode or raw mode name; unknown names resolve to baseline.
            top_k: Final result size.

        Returns:
            At most top_k Candidates, best first.

        Raises:
            ValueError: If the question is blank, or a hybrid mode is
                requested without a lexical search collaborator.
            CollaboratorError: On any embedding, search or generation failure.
        """
        if not question or not question.strip():
            raise ValueError("Question must not be empty")

        resolved = resolve_mode(mode)
        preprocessed = self.preprocess(question, resolved)
        logger.info(
            f"Dense text: strategy={preprocessed.strategy_used} "
            f"({preprocessed.preprocessing_time_ms:.0f}ms)"
        )
        return self.retrieve_with_dense_text(
            question, preprocessed.search_query, resolved, top_k
        )

    def retrieve_with_dense_text(
        self,
        question: str,
        dense_text: str,
        mode: Union[str, Mode, None] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> List[Candidate]:
        """Run retrieval, fusion and gap fill with a caller-chosen dense text.

        Used by evaluation, where the dense text may come precomputed from
        the question set instead of a fresh HyDE call.
        """
        resolved = resolve_mode(mode)
        start = time.perf_counter()

        candidates = self._retrieve_candidates(question, dense_text, resolved, top_k)
        malformed = sum(1 for c in candidates if c.is_malformed)
        if malformed:
            logger.debug(f"Dropped {malformed} candidates without doc_id")
            candidates = [c for c in candidates if not c.is_malformed]

        if self.type_diversity:
            candidates = apply_type_diversity(
                candidates, top_k, self.relative_delta, self.max_same_type
            ).results
        candidates = candidates[:top_k]

        if resolved.uses_gap_fill:
            candidates = self.gap_filler.fill(question, candidates, top_k)

        results = candidates[:top_k]
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Retrieved {len(results)} docs (mode={resolved.value}, top_k={top_k}, "
            f"{elapsed_ms:.0f}ms): {[c.doc_id for c in results]}"
        )
        return results

    def _retrieve_candidates(
        self,
        question: str,
        dense_text: str,
        mode: Mode,
        top_k: int,
    ) -> List[Candidate]:
        """Dense-only or hybrid candidate list (not yet truncated for hybrid)."""
        if not mode.uses_hybrid:
            pool_size = max(top_k, DENSE_TOP_N) if self.type_diversity else top_k
            vector = self.embedder.embed(dense_text)
            return self.vector_search.search(self.collection, vector, pool_size)

        if self.lexical_search is None:
            raise ValueError(f"Lexical search is required for mode={mode.value}")

        vector = self.embedder.embed(dense_text)
        dense = self.vector_search.search(self.collection, vector, DENSE_TOP_N)
        lexical = self.lexical_search.search(question, BM25_TOP_N)

        fused = reciprocal_rank_fusion(
            dense, lexical, k=RRF_K, weight_a=DENSE_WEIGHT, weight_b=BM25_WEIGHT
        )
        logger.info(
            f"Hybrid: dense={len(dense)} bm25={len(lexical)} "
            f"fused={len(fused.results)} overlap={fused.overlap_count}"
        )
        return fused.results
