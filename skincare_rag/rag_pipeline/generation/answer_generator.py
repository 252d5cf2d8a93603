"""Answer generation from retrieved skincare documents.

## RAG Theory: Answer Generation

The generation phase turns the final ranking into a grounded answer. The
LLM is instructed to use only the provided context (products, ingredients,
routines, rules) and to say when the dataset lacks the information, which
keeps recommendations limited to products that actually exist in the box.

## Library Usage

Uses the injected TextGenerator (OpenRouter via `requests` in production).

## Data Flow

1. RetrievalOrchestrator returns the ranked Candidates for the question
2. Empty ranking -> fixed "no relevant documents" answer, no LLM call
3. Candidates are formatted into labeled context blocks
4. System prompt + question + context go to the generator
5. Return AskResponse with the answer and source payloads
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from skincare_rag.config import DEFAULT_TOP_K
from skincare_rag.rag_pipeline.collaborators import TextGenerator
from skincare_rag.rag_pipeline.retrieval.modes import Mode, resolve_mode
from skincare_rag.rag_pipeline.retrieval.orchestrator import RetrievalOrchestrator
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)

NO_DOCUMENTS_ANSWER = "Sorry, I could not find any relevant documents in the knowledge base."

CONTEXT_SEPARATOR = "\n---------------------\n"


@dataclass
class AskResponse:
    """Result of answering a question.

    Attributes:
        answer: The generated answer text (or the no-documents message).
        sources: Payloads of the documents used as context, in rank order.
        mode: Retrieval mode that produced the context.
        hits: The ranked Candidates behind the sources.
        generation_time_ms: Time spent in the generator in milliseconds.
        user_prompt_used: The user prompt with context (for logging).
    """

    answer: str
    sources: List[Dict[str, Any]] = field(default_factory=list)
    mode: str = Mode.BASELINE.value
    hits: List[Candidate] = field(default_factory=list)
    generation_time_ms: float = 0.0
    user_prompt_used: Optional[str] = None


# =============================================================================
# PROMPTS
# =============================================================================

SYSTEM_PROMPT = """You are a skincare assistant specializing in Korean multi-step routines.
Answer in English in a clear and practical way.
Use ONLY the provided context about products, ingredients, routines and rules.
If the information is missing, say that it is not present in the dataset.
Whenever possible, recommend products that exist in the dataset."""

USER_PROMPT_TEMPLATE = """User question:
{question}

Relevant context from knowledge base:
{context}"""


def build_context(hits: List[Candidate]) -> str:
    """Format ranked hits as labeled context blocks.

    Optional fields (title, skin type, concerns, age range) are only
    included when the payload has them.
    """
    blocks = []
    for hit in hits:
        payload = hit.payload
        lines = [
            f"Document: {hit.doc_id}",
            f"Type: {hit.type or payload.get('type')}",
        ]
        title = hit.title or payload.get("title")
        if title is not None:
            lines.append(f"Title: {title}")
        if payload.get("skin_type") is not None:
            lines.append(f"Skin type: {payload['skin_type']}")
        if payload.get("concerns") is not None:
            lines.append(f"Concerns: {payload['concerns']}")
        if payload.get("age_range") is not None:
            lines.append(f"Age range: {payload['age_range']}")
        lines.append(f"Text: {hit.text if hit.text is not None else payload.get('text')}")
        lines.append(f"Score: {hit.score:.4f}")
        blocks.append("\n".join(lines))
    return CONTEXT_SEPARATOR.join(blocks)


class AnswerGenerator:
    """Retrieve-then-generate for a single question."""

    def __init__(self, orchestrator: RetrievalOrchestrator, generator: TextGenerator):
        self.orchestrator = orchestrator
        self.generator = generator

    def ask(
        self,
        question: str,
        mode: Union[str, Mode, None] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> AskResponse:
        """Answer a question from the knowledge base.

        Raises:
            ValueError: If the question is blank.
            CollaboratorError: On retrieval or generation failure.
        """
        resolved = resolve_mode(mode)
        logger.info(f"Received question (mode={resolved.value}): {question}")

        hits = self.orchestrator.retrieve(question, resolved, top_k)
        if not hits:
            return AskResponse(answer=NO_DOCUMENTS_ANSWER, mode=resolved.value)

        user_prompt = USER_PROMPT_TEMPLATE.format(
            question=question, context=build_context(hits)
        )

        start = time.perf_counter()
        answer = self.generator.generate(SYSTEM_PROMPT, user_prompt)
        elapsed_ms = (time.perf_counter() - start) * 1000

        return AskResponse(
            answer=answer,
            sources=[hit.payload for hit in hits if hit.payload],
            mode=resolved.value,
            hits=hits,
            generation_time_ms=elapsed_ms,
            user_prompt_used=user_prompt,
        )
