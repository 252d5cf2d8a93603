"""Shared fixtures: in-memory fakes for the retrieval collaborators.

Each fake records its calls so tests can assert exactly which external
services a code path touched (and how often).
"""

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from skincare_rag.shared.errors import CollaboratorError
from skincare_rag.shared.schemas import Candidate


def make_candidates(rows: Sequence[Tuple[str, str, float]]) -> List[Candidate]:
    """Build Candidates from (doc_id, type, score) tuples."""
    return [
        Candidate(
            doc_id=doc_id,
            score=score,
            type=doc_type,
            payload={"doc_id": doc_id, "type": doc_type},
        )
        for doc_id, doc_type, score in rows
    ]


def ids(candidates: Sequence[Candidate]) -> List[str]:
    return [c.doc_id for c in candidates]


class FakeEmbedder:
    """Returns a tiny deterministic vector and records embedded texts."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise CollaboratorError("embedding provider down")
        return [float(len(text)), 1.0]


class FakeVectorSearch:
    """Returns canned rankings.

    With one response, every call returns it. With several, calls consume
    them in order and the last one repeats. Results are cut to top_k.
    """

    def __init__(self, *responses: List[Candidate], fail: bool = False):
        self.responses = list(responses) or [[]]
        self.fail = fail
        self.calls: List[Tuple[str, List[float], int]] = []

    def search(self, collection: str, vector: List[float], top_k: int) -> List[Candidate]:
        self.calls.append((collection, vector, top_k))
        if self.fail:
            raise CollaboratorError("vector store down")
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return list(self.responses[index])[:top_k]


class FakeLexicalSearch:
    def __init__(self, results: Optional[List[Candidate]] = None):
        self.results = results or []
        self.calls: List[Tuple[str, int]] = []

    def search(self, query: str, top_n: int) -> List[Candidate]:
        self.calls.append((query, top_n))
        return list(self.results)[:top_n]


class FakeTextGenerator:
    """Replies by system prompt, falling back to a default reply."""

    def __init__(self, default: str = "generated note", replies: Optional[Dict[str, str]] = None):
        self.default = default
        self.replies = replies or {}
        self.calls: List[Tuple[str, str]] = []

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        return self.replies.get(system_prompt, self.default)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> FakeTextGenerator:
    return FakeTextGenerator()
