"""Typed candidate record shared by every retrieval stage.

## RAG Theory: One Record Across Sources

Hybrid retrieval merges hits from sources with different native formats:
vector search returns stored object properties, the lexical index returns
bare ids and types, and the step-back pass returns more vector hits. All of
them are normalized into a single Candidate so fusion, gap filling and
reranking can key on the same fields.

`doc_id` is the stable cross-source key. A blank doc_id marks a malformed
candidate: it can still occupy a rank slot during fusion but is never
deduplicated, reranked or returned to the caller.

## Library Usage

Uses dataclasses for the record. Raw payload keys are kept in `payload` so
downstream display and context building can read fields (skin_type,
concerns, age_range, ...) the retrieval core does not care about.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class Candidate:
    """A scored document hit.

    Attributes:
        doc_id: Stable document identifier (blank for malformed hits).
        score: Source-specific relevance score (similarity, BM25 or RRF).
        type: Normalized document type ("product", "ingredient", "routine", ...).
        title: Optional display title.
        text: Optional document body.
        source: Which retriever produced the hit ("dense", "bm25", "stepback").
        payload: Raw payload with every original key, for passthrough.
    """

    doc_id: str
    score: float
    type: str = ""
    title: Optional[str] = None
    text: Optional[str] = None
    source: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, score: float, payload: Optional[Dict[str, Any]]) -> "Candidate":
        """Build a Candidate from a raw payload map.

        The doc id is read from "doc_id" (falling back to "id") and stripped.
        The type is stripped and lower-cased.
        """
        payload = dict(payload or {})
        raw_id = payload.get("doc_id")
        if raw_id is None:
            raw_id = payload.get("id")
        raw_type = payload.get("type")
        title = payload.get("title") or payload.get("name")
        return cls(
            doc_id="" if raw_id is None else str(raw_id).strip(),
            score=float(score),
            type="" if raw_type is None else str(raw_type).strip().lower(),
            title=None if title is None else str(title),
            text=None if payload.get("text") is None else str(payload["text"]),
            source=payload.get("source"),
            payload=payload,
        )

    @property
    def is_malformed(self) -> bool:
        return not self.doc_id.strip()

    def with_score(self, score: float) -> "Candidate":
        """Return a copy carrying a different score (fusion output)."""
        return Candidate(
            doc_id=self.doc_id,
            score=score,
            type=self.type,
            title=self.title,
            text=self.text,
            source=self.source,
            payload=self.payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "score": self.score,
            "type": self.type,
            "title": self.title,
            "source": self.source,
        }
