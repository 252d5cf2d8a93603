"""Ranking-quality evaluation of retrieval modes over a labeled question set."""

from skincare_rag.evaluation.harness import EvaluationHarness, load_eval_questions, write_report
from skincare_rag.evaluation.schemas import EvalQuestion, EvaluationReport, QuestionResult

__all__ = [
    "EvaluationHarness",
    "EvalQuestion",
    "EvaluationReport",
    "QuestionResult",
    "load_eval_questions",
    "write_report",
]
