"""Retrieval evaluation across modes.

Runs the labeled question set through each retrieval mode and reports
ranking-quality metrics (Hit@k, Recall@k, RulePresence@3,
ProductPresence@3, MSSRecall@3) side by side.

Purpose:
    - Measure whether HyDE, hybrid RRF and step-back gap fill improve retrieval
    - Compare modes on identical questions with repeatable dense texts
    - Persist one JSON report per mode for later analysis

Usage Examples:
    # Default modes (baseline, hyde, hyde_stepback_fallback)
    python -m skincare_rag.stages.run_evaluation

    # All six modes
    python -m skincare_rag.stages.run_evaluation --modes all

    # Hybrid modes only, first 10 questions
    python -m skincare_rag.stages.run_evaluation --modes hybrid hyde_hybrid -n 10

    # Custom question set and output directory
    python -m skincare_rag.stages.run_evaluation --questions-file data/evaluation/q.jsonl -o out/

Arguments:
    --modes MODE [MODE ...]   Retrieval modes to evaluate ("all" for every mode)
    --questions-file PATH     JSONL question set (default: from config)
    -n, --questions N         Limit to first N questions
    -o, --output-dir PATH     Directory for evaluation_report_{mode}.json files
    --collection NAME         Weaviate collection (default: from config)
    --dataset PATH            Dataset JSON for the BM25 index (hybrid modes)
    --workers N               Max modes evaluated concurrently

Output:
    evaluation_report_{mode}.json per successful mode, plus a printed summary.

Prerequisites:
    - Weaviate must be running with the skincare collection populated
    - OpenRouter API key must be set in .env
"""

import argparse
from pathlib import Path
from typing import Dict, List

from skincare_rag.config import (
    COLLECTION_NAME,
    DATASET_FILE,
    EVAL_DEFAULT_MODES,
    EVAL_MAX_WORKERS,
    EVAL_QUESTIONS_FILE,
    EVAL_RESULTS_DIR,
    EVAL_TOP_K,
    PREPROCESSING_MODEL,
)
from skincare_rag.evaluation import EvaluationHarness, EvaluationReport, write_report
from skincare_rag.rag_pipeline.embedding.embedder import OpenRouterEmbedder
from skincare_rag.rag_pipeline.generation.text_generator import OpenRouterTextGenerator
from skincare_rag.rag_pipeline.indexing.bm25_index import SkincareBM25Index
from skincare_rag.rag_pipeline.indexing.weaviate_client import (
    WeaviateVectorSearch,
    get_client,
    get_collection_count,
)
from skincare_rag.rag_pipeline.retrieval.modes import list_modes
from skincare_rag.shared.files import setup_logging

logger = setup_logging(__name__)

SUMMARY_METRICS = [
    ("Recall@3", "recall_at_3"),
    ("Recall@5", "recall_at_5"),
    ("Hit@3", "hit_at_3"),
    ("Hit@5", "hit_at_5"),
    ("RulePresence@3", "rule_presence_at_3"),
    ("ProductPresence@3", "product_presence_at_3"),
    ("MSSRecall@3", "mss_recall_at_3"),
]


# ============================================================================
# REPORTING
# ============================================================================


def print_mode_report(report: EvaluationReport, report_path: Path) -> None:
    """Print one mode's aggregate block."""
    print("\n" + "=" * 60)
    print(f"RETRIEVAL EVALUATION: {report.mode}")
    print("=" * 60)
    print(f"Total questions   : {report.total}")
    print(f"Recall@3          : {report.recall_at_3:.4f}")
    print(f"Recall@5          : {report.recall_at_5:.4f}")
    print(f"Hit@3             : {report.hit_at_3:.4f}")
    print(f"Hit@5             : {report.hit_at_5:.4f}")
    print(f"RulePresence@3    : {report.rule_presence_at_3:.4f} (rule questions: {report.rule_questions})")
    print(f"ProductPresence@3 : {report.product_presence_at_3:.4f} (product questions: {report.product_questions})")
    print(f"MSSRecall@3       : {report.mss_recall_at_3:.4f} (mss questions: {report.mss_questions})")
    print(f"Dense text        : {report.dense_text_strategies()}")
    print(f"Report saved to   : {report_path}")


def print_summary_table(reports: Dict[str, EvaluationReport]) -> None:
    """Print successful modes side by side, then any failures."""
    succeeded = [r for r in reports.values() if r.succeeded]
    failed = [r for r in reports.values() if not r.succeeded]

    if succeeded:
        width = 20 + 16 * len(succeeded)
        print("\n" + "=" * width)
        print("RETRIEVAL EVALUATION SUMMARY")
        print("=" * width)
        print(f"{'Metric':<20}" + "".join(f"{r.mode[:15]:>16}" for r in succeeded))
        print("-" * width)
        for label, attr in SUMMARY_METRICS:
            print(f"{label:<20}" + "".join(f"{getattr(r, attr):>16.4f}" for r in succeeded))
        print("=" * width)

    if failed:
        print("\nFAILED MODES")
        for r in failed:
            print(f"  {r.mode}: {r.error}")


# ============================================================================
# MAIN
# ============================================================================


def resolve_mode_args(raw_modes: List[str]) -> List[str]:
    if any(m.lower() == "all" for m in raw_modes):
        return list_modes()
    return raw_modes


def main():
    """Run retrieval evaluation for the requested modes."""
    parser = argparse.ArgumentParser(
        description="Evaluate retrieval modes on the labeled question set"
    )
    parser.add_argument(
        "--modes",
        nargs="+",
        default=EVAL_DEFAULT_MODES,
        help=f"Modes to evaluate, or 'all' (default: {' '.join(EVAL_DEFAULT_MODES)})",
    )
    parser.add_argument(
        "--questions-file",
        type=str,
        default=str(EVAL_QUESTIONS_FILE),
        help=f"JSONL question set (default: {EVAL_QUESTIONS_FILE})",
    )
    parser.add_argument(
        "--questions",
        "-n",
        type=int,
        default=None,
        help="Limit to first N questions",
    )
    parser.add_argument(
        "--output-dir",
        "-o",
        type=str,
        default=str(EVAL_RESULTS_DIR),
        help=f"Directory for report files (default: {EVAL_RESULTS_DIR})",
    )
    parser.add_argument(
        "--collection",
        type=str,
        default=COLLECTION_NAME,
        help=f"Weaviate collection (default: {COLLECTION_NAME})",
    )
    parser.add_argument(
        "--dataset",
        type=str,
        default=str(DATASET_FILE),
        help="Dataset JSON used to build the BM25 index for hybrid modes",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=EVAL_MAX_WORKERS,
        help=f"Max modes evaluated concurrently (default: {EVAL_MAX_WORKERS})",
    )

    args = parser.parse_args()
    modes = resolve_mode_args(args.modes)

    logger.info(f"Modes: {modes}")
    logger.info(f"Collection: {args.collection}")
    logger.info(f"Top-K: {EVAL_TOP_K}")

    client = get_client()
    try:
        logger.info(f"Collection size: {get_collection_count(client, args.collection)}")

        dataset_path = Path(args.dataset)
        harness = EvaluationHarness(
            embedder=OpenRouterEmbedder(),
            vector_search=WeaviateVectorSearch(client),
            generator=OpenRouterTextGenerator(model=PREPROCESSING_MODEL, temperature=0.7, max_tokens=300),
            lexical_factory=lambda: SkincareBM25Index(dataset_path).build(),
            collection=args.collection,
            top_k=EVAL_TOP_K,
            max_workers=args.workers,
        )
        reports = harness.run(modes, Path(args.questions_file), limit=args.questions)
    finally:
        client.close()

    output_dir = Path(args.output_dir)
    for report in reports.values():
        if report.succeeded:
            path = write_report(report, output_dir)
            print_mode_report(report, path)

    print_summary_table(reports)


if __name__ == "__main__":
    main()
