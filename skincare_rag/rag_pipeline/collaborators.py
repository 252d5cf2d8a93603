"""Interfaces for the external services the retrieval core depends on.

The orchestrator, gap filler and evaluation harness only talk to these
protocols. Production wiring uses the OpenRouter, Weaviate and BM25
implementations; tests inject in-memory fakes.

All calls are blocking and at-most-once. Implementations raise
CollaboratorError (or a subclass) on provider failure.
"""

from typing import List, Protocol

from skincare_rag.shared.schemas import Candidate


class EmbeddingProvider(Protocol):
    """Turns text into a fixed-dimension vector."""

    def embed(self, text: str) -> List[float]:
        ...


class VectorSearch(Protocol):
    """Similarity search over a vector collection, best match first."""

    def search(self, collection: str, vector: List[float], top_k: int) -> List[Candidate]:
        ...


class LexicalSearch(Protocol):
    """BM25 search over the static corpus, best match first."""

    def search(self, query: str, top_n: int) -> List[Candidate]:
        ...


class TextGenerator(Protocol):
    """Chat-style text generation."""

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        ...
