"""Ranking-quality metrics for retrieval evaluation.

## RAG Theory: Measuring Retrieval, Not Generation

These metrics score the ranked doc_ids a mode returns against labeled
relevant documents, independent of any generated answer:

- **Hit@k**: did at least one relevant document make the first k?
- **Recall@k**: what fraction of the relevant set made the first k?
- **RulePresence@3**: for questions whose labels include a routine doc, is
  *any* routine-typed document in the top 3? Tracks the gap the step-back
  filler targets.
- **ProductPresence@3**: the same check for product questions, guarding
  against gap filling crowding out products.
- **MSSRecall@3**: recall against the minimum sufficient set, the smallest
  set of documents that answers the question.

Each metric is macro-averaged over the questions it applies to.
"""

from typing import Iterable, List, Sequence

from skincare_rag.evaluation.schemas import EvaluationReport, QuestionResult
from skincare_rag.shared.schemas import Candidate

RULE_DOC_PREFIX = "routine_"
PRODUCT_DOC_PREFIX = "product_"


def hit_at_k(retrieved: Sequence[str], relevant: Iterable[str], k: int) -> bool:
    """True iff the first k retrieved ids intersect relevant (False if empty)."""
    relevant_set = set(relevant)
    if not relevant_set:
        return False
    return any(doc_id in relevant_set for doc_id in retrieved[:k])


def recall_at_k(retrieved: Sequence[str], relevant: Iterable[str], k: int) -> float:
    """|first-k retrieved ∩ relevant| / |relevant|, 0.0 if relevant is empty."""
    relevant_set = set(relevant)
    if not relevant_set:
        return 0.0
    found = relevant_set.intersection(retrieved[:k])
    return len(found) / len(relevant_set)


def type_present_at_k(ranking: Sequence[Candidate], k: int, expected_type: str) -> bool:
    expected = expected_type.lower()
    return any(c.type.strip().lower() == expected for c in ranking[:k])


def is_rule_question(relevant: Iterable[str]) -> bool:
    return any(doc_id and doc_id.startswith(RULE_DOC_PREFIX) for doc_id in relevant)


def is_product_question(relevant: Iterable[str]) -> bool:
    return any(doc_id and doc_id.startswith(PRODUCT_DOC_PREFIX) for doc_id in relevant)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def aggregate_report(mode: str, results: List[QuestionResult]) -> EvaluationReport:
    """Macro-average per-question results into an EvaluationReport."""
    rule = [r for r in results if is_rule_question(r.relevant_doc_ids)]
    product = [r for r in results if is_product_question(r.relevant_doc_ids)]
    mss = [r for r in results if r.mss_doc_ids]

    return EvaluationReport(
        mode=mode,
        total=len(results),
        hit_at_3=_mean([float(r.hit_at_3) for r in results]),
        hit_at_5=_mean([float(r.hit_at_5) for r in results]),
        recall_at_3=_mean([r.recall_at_3 for r in results]),
        recall_at_5=_mean([r.recall_at_5 for r in results]),
        rule_presence_at_3=_mean([float(r.rule_present_at_3) for r in rule]),
        product_presence_at_3=_mean([float(r.product_present_at_3) for r in product]),
        mss_recall_at_3=_mean([r.mss_recall_at_3 for r in mss]),
        rule_questions=len(rule),
        product_questions=len(product),
        mss_questions=len(mss),
        per_question=tuple(results),
    )
