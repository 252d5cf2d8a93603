"""Interactive question answering from the command line.

Reads questions from stdin, retrieves context with the chosen mode and
prints the generated answer with its source documents.

Usage Examples:
    # Default mode (hyde_hybrid_stepback_fallback)
    python -m skincare_rag.stages.run_ask

    # Plain dense retrieval, 3 documents, no trace logging
    python -m skincare_rag.stages.run_ask --mode baseline --top-k 3 --no-log

    # Type-aware reranking of the candidate pool
    python -m skincare_rag.stages.run_ask --mode hyde --type-diversity

Type 'exit' or 'quit' (or send EOF) to stop.
"""

import argparse
from pathlib import Path

from skincare_rag.config import COLLECTION_NAME, DATASET_FILE, DEFAULT_TOP_K, PREPROCESSING_MODEL
from skincare_rag.rag_pipeline.embedding.embedder import OpenRouterEmbedder
from skincare_rag.rag_pipeline.generation.answer_generator import AnswerGenerator, AskResponse
from skincare_rag.rag_pipeline.generation.text_generator import OpenRouterTextGenerator
from skincare_rag.rag_pipeline.indexing.bm25_index import SkincareBM25Index
from skincare_rag.rag_pipeline.indexing.weaviate_client import WeaviateVectorSearch, get_client
from skincare_rag.rag_pipeline.retrieval.modes import Mode, list_modes, resolve_mode
from skincare_rag.rag_pipeline.retrieval.orchestrator import RetrievalOrchestrator
from skincare_rag.shared.errors import CollaboratorError
from skincare_rag.shared.files import setup_logging
from skincare_rag.utils.query_logger import log_query

logger = setup_logging(__name__)

EXIT_WORDS = {"exit", "quit"}


def print_response(response: AskResponse) -> None:
    print("\n" + "-" * 60)
    print(response.answer)
    if response.hits:
        print("\nSources:")
        for i, hit in enumerate(response.hits, 1):
            title = f" - {hit.title}" if hit.title else ""
            print(f"  [{i}] {hit.doc_id} ({hit.type}){title}")
    print("-" * 60)


def main():
    """Answer questions interactively."""
    parser = argparse.ArgumentParser(description="Ask the skincare knowledge base")
    parser.add_argument(
        "--mode",
        "-m",
        type=str,
        default=Mode.HYDE_HYBRID_STEPBACK_FALLBACK.value,
        help=f"Retrieval mode: {', '.join(list_modes())}",
    )
    parser.add_argument(
        "--top-k",
        "-k",
        type=int,
        default=DEFAULT_TOP_K,
        help=f"Documents used as context (default: {DEFAULT_TOP_K})",
    )
    parser.add_argument(
        "--type-diversity",
        action="store_true",
        default=False,
        help="Apply type-aware reranking to the candidate pool",
    )
    parser.add_argument(
        "--no-log",
        action="store_true",
        default=False,
        help="Skip appending traces to the query log",
    )
    args = parser.parse_args()

    mode = resolve_mode(args.mode)
    client = get_client()
    try:
        lexical = SkincareBM25Index(Path(DATASET_FILE)).build() if mode.uses_hybrid else None
        orchestrator = RetrievalOrchestrator(
            embedder=OpenRouterEmbedder(),
            vector_search=WeaviateVectorSearch(client),
            generator=OpenRouterTextGenerator(model=PREPROCESSING_MODEL, temperature=0.7, max_tokens=300),
            lexical_search=lexical,
            type_diversity=args.type_diversity,
        )
        answerer = AnswerGenerator(orchestrator, OpenRouterTextGenerator())

        print(f"Skincare RAG (mode={mode.value}, top_k={args.top_k}). Type 'exit' to quit.")
        while True:
            try:
                question = input("\nQuestion: ").strip()
            except EOFError:
                break
            if not question:
                continue
            if question.lower() in EXIT_WORDS:
                break

            try:
                response = answerer.ask(question, mode, args.top_k)
            except CollaboratorError as exc:
                logger.error(f"Request failed: {exc}")
                continue

            print_response(response)
            if not args.no_log:
                log_query(question, response, args.top_k, COLLECTION_NAME)
    finally:
        client.close()


if __name__ == "__main__":
    main()
