"""Query rewriting for dense retrieval: HyDE notes and step-back notes.

## RAG Theory: Query Preprocessing

Questions and documents are phrased very differently ("can I use retinol
with vitamin C?" vs. an ingredient page about retinoid compatibility), so
embedding the raw question often misses the right documents. Two rewrites
help:

1. **HyDE** (Hypothetical Document Embeddings, Gao et al., 2022): ask the
   LLM for a short note that *looks like* a knowledge-base entry answering
   the question, and embed that instead of the question.
2. **Step-back prompting** (Google DeepMind, 2023): abstract the question
   into the underlying principle (ingredient compatibility, irritation
   risk, application order). Used only for the secondary gap-fill search.

A blank generation is not an error: HyDE falls back to the raw question and
step-back skips the fill.

## Library Usage

Calls the injected TextGenerator collaborator (OpenRouter in production).

## Data Flow

1. Orchestrator or gap filler passes the raw question + TextGenerator
2. Fixed system prompt + question are sent to the generator
3. Stripped text is returned; callers decide how to handle blank output
"""

import time
from dataclasses import dataclass

from skincare_rag.rag_pipeline.collaborators import TextGenerator
from skincare_rag.shared.files import setup_logging

logger = setup_logging(__name__)


@dataclass
class PreprocessedQuery:
    """Result of choosing the dense retrieval text.

    Attributes:
        original_query: The user's question.
        search_query: Text to embed for dense retrieval.
        strategy_used: "none", "hyde", "precomputed" or "hyde_fallback".
        preprocessing_time_ms: Time spent generating, in milliseconds.
    """

    original_query: str
    search_query: str
    strategy_used: str = "none"
    preprocessing_time_ms: float = 0.0


# =============================================================================
# HYDE
# =============================================================================

HYDE_PROMPT = """You write retrieval notes for a skincare knowledge base about
Korean multi-step routines (products, ingredients, routines and usage rules).

Given a user question, write a short factual note (3-5 sentences) that a
knowledge-base document answering it would contain. Mention the relevant
product types, active ingredients, skin types, concerns and application
steps by name. Do not address the user, do not hedge, and do not repeat the
question. Output only the note."""


def generate_hyde_text(question: str, generator: TextGenerator) -> str:
    """Generate a hypothetical knowledge-base note for the question.

    Returns:
        Stripped note text; empty string if the generator returned blank.

    Raises:
        CollaboratorError: If the generator call fails.
    """
    text = (generator.generate(HYDE_PROMPT, question) or "").strip()
    if not text:
        logger.warning("HyDE generation returned empty text")
    return text


def rewrite_query(question: str, generator: TextGenerator) -> PreprocessedQuery:
    """HyDE rewrite with fallback to the raw question on blank output."""
    start = time.perf_counter()
    note = generate_hyde_text(question, generator)
    elapsed_ms = (time.perf_counter() - start) * 1000

    if not note:
        logger.warning("Falling back to original question for dense retrieval")
        return PreprocessedQuery(
            original_query=question,
            search_query=question,
            strategy_used="hyde_fallback",
            preprocessing_time_ms=elapsed_ms,
        )

    return PreprocessedQuery(
        original_query=question,
        search_query=note,
        strategy_used="hyde",
        preprocessing_time_ms=elapsed_ms,
    )


# =============================================================================
# STEP-BACK
# =============================================================================

STEP_BACK_PROMPT = """You help a skincare knowledge base find background rules.

Given a user question, step back from the specific products mentioned and
write a short retrieval note (2-4 sentences) about the underlying principle
the answer depends on: active-ingredient compatibility, irritation and
sensitization risk, exfoliation frequency, or the order of steps in a
morning/evening routine. Name the ingredient classes and routine steps
involved. Do not answer the literal question. Output only the note."""


def generate_step_back_text(question: str, generator: TextGenerator) -> str:
    """Generate a principle-level note for the gap-fill search.

    Returns:
        Stripped note text; empty string if the generator returned blank.

    Raises:
        CollaboratorError: If the generator call fails.
    """
    text = (generator.generate(STEP_BACK_PROMPT, question) or "").strip()
    if not text:
        logger.warning("Step-back generation returned empty text")
    return text
