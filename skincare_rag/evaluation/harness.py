"""Evaluation harness: run retrieval modes over a labeled question set.

## RAG Theory: Side-by-Side Strategy Comparison

Every mode is run over the same questions through the same production
pipeline (RetrievalOrchestrator), so metric differences isolate the effect
of HyDE, hybrid fusion and gap filling. Questions may carry a precomputed
dense retrieval text; rewrite modes use it instead of a fresh HyDE call,
which makes runs repeatable and cheaper.

## Library Usage

- `concurrent.futures.ThreadPoolExecutor`: one task per mode. Each task
  builds its own orchestrator (and its own BM25 index for hybrid modes),
  so modes share no mutable state. A mode that raises is recorded as a
  failed report without affecting the others.
- `json` for JSONL loading and report files.

## Data Flow

1. load_eval_questions() parses the JSONL question set (pydantic)
2. evaluate() submits one _run_mode() task per mode and joins them
3. _run_mode(): per question choose dense text, retrieve, score
4. aggregate_report() macro-averages into an EvaluationReport
5. write_report() persists evaluation_report_{mode}.json
"""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from skincare_rag.config import COLLECTION_NAME, EVAL_MAX_WORKERS, EVAL_TOP_K
from skincare_rag.evaluation.metrics import (
    aggregate_report,
    hit_at_k,
    is_product_question,
    is_rule_question,
    recall_at_k,
    type_present_at_k,
)
from skincare_rag.evaluation.schemas import EvalQuestion, EvaluationReport, QuestionResult
from skincare_rag.rag_pipeline.collaborators import (
    EmbeddingProvider,
    LexicalSearch,
    TextGenerator,
    VectorSearch,
)
from skincare_rag.rag_pipeline.retrieval.modes import Mode, resolve_mode
from skincare_rag.rag_pipeline.retrieval.orchestrator import RetrievalOrchestrator
from skincare_rag.rag_pipeline.retrieval.preprocessing.query_preprocessing import PreprocessedQuery
from skincare_rag.shared.files import setup_logging

logger = setup_logging(__name__)


# ============================================================================
# LOADER
# ============================================================================


def load_eval_questions(filepath: Path, limit: Optional[int] = None) -> List[EvalQuestion]:
    """
    Load evaluation questions from a JSONL file.

    Blank lines and lines starting with '#' are skipped.

    Args:
        filepath: Path to the question set (one JSON object per line).
        limit: Max number of questions to load.

    Returns:
        List of EvalQuestion in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If a line is not valid JSON or misses required fields.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Evaluation questions file not found: {filepath}")

    questions: List[EvalQuestion] = []
    with open(filepath, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            try:
                questions.append(EvalQuestion.model_validate_json(stripped))
            except ValidationError as exc:
                raise ValueError(f"Invalid question on line {line_number} of {filepath}: {exc}") from exc

            if limit and len(questions) >= limit:
                logger.info(f"Limited to first {limit} questions")
                break

    return questions


# ============================================================================
# HARNESS
# ============================================================================


def choose_dense_text(
    mode: Mode,
    question: EvalQuestion,
    orchestrator: RetrievalOrchestrator,
) -> PreprocessedQuery:
    """Dense retrieval text for a question under a mode.

    Non-rewrite modes use the raw query (strategy "none"). Rewrite modes
    prefer the question's precomputed text ("precomputed") and otherwise
    generate a HyDE note ("hyde", or "hyde_fallback" when the note is blank).
    """
    query = question.query.strip()
    if mode.uses_rewrite:
        precomputed = question.precomputed_retrieval_text
        if precomputed:
            return PreprocessedQuery(
                original_query=query,
                search_query=precomputed,
                strategy_used="precomputed",
            )
    return orchestrator.preprocess(query, mode)


class EvaluationHarness:
    """Runs retrieval modes over a question set and scores them.

    Args:
        embedder: Shared EmbeddingProvider (stateless).
        vector_search: Shared VectorSearch (stateless).
        generator: Shared TextGenerator (stateless).
        lexical_factory: Builds a fresh LexicalSearch per hybrid mode.
        collection: Vector collection name.
        top_k: Final ranking size per question.
        max_workers: Upper bound on concurrently running modes.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_search: VectorSearch,
        generator: TextGenerator,
        lexical_factory: Optional[Callable[[], LexicalSearch]] = None,
        collection: str = COLLECTION_NAME,
        top_k: int = EVAL_TOP_K,
        max_workers: int = EVAL_MAX_WORKERS,
    ):
        self.embedder = embedder
        self.vector_search = vector_search
        self.generator = generator
        self.lexical_factory = lexical_factory
        self.collection = collection
        self.top_k = top_k
        self.max_workers = max_workers

    def run(
        self,
        modes: Sequence[Union[str, Mode]],
        question_set_path: Path,
        limit: Optional[int] = None,
    ) -> Dict[str, EvaluationReport]:
        """Load the question set and evaluate every mode.

        Returns:
            Mapping of canonical mode name to its report, in request order.
            Failed modes map to a report with `error` set.
        """
        questions = load_eval_questions(question_set_path, limit=limit)
        logger.info(f"Loaded {len(questions)} questions from {question_set_path}")
        return self.evaluate(modes, questions)

    def evaluate(
        self,
        modes: Sequence[Union[str, Mode]],
        questions: List[EvalQuestion],
    ) -> Dict[str, EvaluationReport]:
        """Evaluate modes concurrently, one task per mode."""
        resolved: List[Mode] = []
        for raw in modes:
            mode = resolve_mode(raw)
            if mode not in resolved:
                resolved.append(mode)

        if not resolved:
            return {}

        workers = max(1, min(self.max_workers, len(resolved)))
        reports: Dict[str, EvaluationReport] = {}

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                mode: executor.submit(self._run_mode, mode, questions)
                for mode in resolved
            }
            for mode, future in futures.items():
                try:
                    reports[mode.value] = future.result()
                except Exception as exc:
                    logger.error(f"Evaluation failed for mode={mode.value}: {exc}")
                    reports[mode.value] = EvaluationReport.failed(
                        mode.value, f"{type(exc).__name__}: {exc}"
                    )

        return reports

    def _build_orchestrator(self, mode: Mode) -> RetrievalOrchestrator:
        lexical = None
        if mode.uses_hybrid:
            if self.lexical_factory is None:
                raise ValueError(f"A lexical index factory is required for mode={mode.value}")
            lexical = self.lexical_factory()
        return RetrievalOrchestrator(
            embedder=self.embedder,
            vector_search=self.vector_search,
            generator=self.generator,
            lexical_search=lexical,
            collection=self.collection,
        )

    def _run_mode(self, mode: Mode, questions: List[EvalQuestion]) -> EvaluationReport:
        logger.info(f"Evaluating mode={mode.value} on {len(questions)} questions")
        orchestrator = self._build_orchestrator(mode)

        results = [self._evaluate_question(mode, q, orchestrator) for q in questions]
        report = aggregate_report(mode.value, results)

        logger.info(
            f"mode={mode.value} hit@3={report.hit_at_3:.3f} recall@3={report.recall_at_3:.3f} "
            f"hit@5={report.hit_at_5:.3f} recall@5={report.recall_at_5:.3f}"
        )
        return report

    def _evaluate_question(
        self,
        mode: Mode,
        question: EvalQuestion,
        orchestrator: RetrievalOrchestrator,
    ) -> QuestionResult:
        query = question.query.strip()
        preprocessed = choose_dense_text(mode, question, orchestrator)
        ranking = orchestrator.retrieve_with_dense_text(
            query, preprocessed.search_query, mode, self.top_k
        )

        retrieved = [c.doc_id for c in ranking if c.doc_id.strip()]
        relevant = question.relevant_doc_ids
        mss = question.mss_doc_ids

        return QuestionResult(
            id=question.id,
            query=query,
            dense_text=preprocessed.search_query,
            relevant_doc_ids=tuple(relevant),
            mss_doc_ids=tuple(mss),
            retrieved_doc_ids=tuple(retrieved),
            hit_at_3=hit_at_k(retrieved, relevant, 3),
            hit_at_5=hit_at_k(retrieved, relevant, 5),
            recall_at_3=recall_at_k(retrieved, relevant, 3),
            recall_at_5=recall_at_k(retrieved, relevant, 5),
            rule_present_at_3=is_rule_question(relevant) and type_present_at_k(ranking, 3, "routine"),
            product_present_at_3=is_product_question(relevant) and type_present_at_k(ranking, 3, "product"),
            mss_recall_at_3=recall_at_k(retrieved, mss, 3),
            dense_text_strategy=preprocessed.strategy_used,
            preprocessing_time_ms=preprocessed.preprocessing_time_ms,
        )


# ============================================================================
# REPORTS
# ============================================================================


def write_report(report: EvaluationReport, output_dir: Path) -> Path:
    """Write evaluation_report_{mode}.json and return its path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"evaluation_report_{report.mode}.json"

    data = {"timestamp": datetime.now().isoformat(), **report.to_dict()}
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    logger.info(f"Report saved to: {output_path}")
    return output_path
