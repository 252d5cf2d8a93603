"""Schemas for evaluation questions and reports.

## Library Usage

- Pydantic v2 BaseModel for EvalQuestion: validates each JSONL line and
  maps the mixed snake_case / camelCase keys of the question set
  (relevant_doc_ids, mss_doc_ids, denseRetrievalText, retrievalText).
- Frozen dataclasses for QuestionResult and EvaluationReport: a report is
  immutable once produced and serialized with to_dict().
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EvalQuestion(BaseModel):
    """One labeled question from the evaluation set.

    Example line:
        {"id": "q01", "query": "Can I use retinol with vitamin C?",
         "relevant_doc_ids": ["routine_actives_rules", "ingredient_retinol"],
         "mss_doc_ids": ["routine_actives_rules"],
         "denseRetrievalText": "Retinol and vitamin C ..."}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    query: str
    relevant_doc_ids: List[str] = Field(default_factory=list)
    mss_doc_ids: List[str] = Field(default_factory=list)
    dense_retrieval_text: Optional[str] = Field(default=None, alias="denseRetrievalText")
    retrieval_text: Optional[str] = Field(default=None, alias="retrievalText")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("relevant_doc_ids", "mss_doc_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def precomputed_retrieval_text(self) -> Optional[str]:
        """First non-blank of denseRetrievalText / retrievalText."""
        for text in (self.dense_retrieval_text, self.retrieval_text):
            if text and text.strip():
                return text.strip()
        return None


@dataclass(frozen=True)
class QuestionResult:
    """Per-question detail kept alongside aggregates for auditability."""

    id: str
    query: str
    dense_text: str
    relevant_doc_ids: Tuple[str, ...]
    mss_doc_ids: Tuple[str, ...]
    retrieved_doc_ids: Tuple[str, ...]
    hit_at_3: bool
    hit_at_5: bool
    recall_at_3: float
    recall_at_5: float
    rule_present_at_3: bool
    product_present_at_3: bool
    mss_recall_at_3: float
    dense_text_strategy: str = "none"
    preprocessing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "dense_text": self.dense_text,
            "relevant_doc_ids": list(self.relevant_doc_ids),
            "mss_doc_ids": list(self.mss_doc_ids),
            "retrieved_doc_ids": list(self.retrieved_doc_ids),
            "hit_at_3": self.hit_at_3,
            "hit_at_5": self.hit_at_5,
            "recall_at_3": self.recall_at_3,
            "recall_at_5": self.recall_at_5,
            "rule_present_at_3": self.rule_present_at_3,
            "product_present_at_3": self.product_present_at_3,
            "mss_recall_at_3": self.mss_recall_at_3,
            "dense_text_strategy": self.dense_text_strategy,
            "preprocessing_time_ms": round(self.preprocessing_time_ms, 1),
        }


@dataclass(frozen=True)
class EvaluationReport:
    """Aggregate metrics for one mode over the question set.

    Each metric is a macro-average over its applicable questions: hit and
    recall over all questions, rule/product presence over rule/product
    questions, MSS recall over questions with a non-empty MSS. An empty
    subset averages to 0.0.

    A report with `error` set records a failed mode run; its metrics are
    zero and per_question is empty.
    """

    mode: str
    total: int = 0
    hit_at_3: float = 0.0
    hit_at_5: float = 0.0
    recall_at_3: float = 0.0
    recall_at_5: float = 0.0
    rule_presence_at_3: float = 0.0
    product_presence_at_3: float = 0.0
    mss_recall_at_3: float = 0.0
    rule_questions: int = 0
    product_questions: int = 0
    mss_questions: int = 0
    per_question: Tuple[QuestionResult, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, mode: str, error: str) -> "EvaluationReport":
        return cls(mode=mode, error=error)

    def aggregate_scores(self) -> Dict[str, float]:
        return {
            "hit_at_3": self.hit_at_3,
            "hit_at_5": self.hit_at_5,
            "recall_at_3": self.recall_at_3,
            "recall_at_5": self.recall_at_5,
            "rule_presence_at_3": self.rule_presence_at_3,
            "product_presence_at_3": self.product_presence_at_3,
            "mss_recall_at_3": self.mss_recall_at_3,
        }

    def dense_text_strategies(self) -> Dict[str, int]:
        """How many questions used each dense text strategy."""
        return dict(Counter(q.dense_text_strategy for q in self.per_question))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "total": self.total,
            "aggregate_scores": self.aggregate_scores(),
            "subset_sizes": {
                "rule_questions": self.rule_questions,
                "product_questions": self.product_questions,
                "mss_questions": self.mss_questions,
            },
            "dense_text_strategies": self.dense_text_strategies(),
            "error": self.error,
            "per_question_results": [q.to_dict() for q in self.per_question],
        }
