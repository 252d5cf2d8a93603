"""Multi-field BM25 index over the skincare dataset.

## RAG Theory: Lexical Retrieval for Hybrid Search

Dense retrieval matches meaning but is weak on exact names: a question about
"tranexamic acid" or a specific product line is often answered best by the
documents that literally contain those tokens. BM25 covers that gap, and
hybrid retrieval fuses both rankings with RRF.

Product and ingredient names carry most of the lexical signal, so fields are
scored separately and combined with boosts (title and ingredients strongest).
A catch-all "all" field keeps matches robust when a term only appears in a
low-boost field.

## Library Usage

Uses `rank_bm25.BM25Okapi`, one index per field. Per-field score arrays
(numpy) are combined as a boost-weighted sum. Tokens are Porter-stemmed with
`nltk` on both the index and the query side, so "peptides" matches a
"Peptide" title and "exfoliating" matches "exfoliation".

## Data Flow

1. build() loads the dataset JSON (array of records)
2. Each record is split into title/text/about/ingredients/how_to_use/all
3. search() tokenizes the raw question, scores every field, sums with boosts
4. Returns Candidates {doc_id, type, source="bm25"} with positive scores only
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
from nltk.stem import PorterStemmer
from rank_bm25 import BM25Okapi

from skincare_rag.config import BM25_FIELD_BOOSTS, DATASET_FILE
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)

ENGLISH_STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "do", "does",
    "for", "from", "has", "have", "how", "i", "if", "in", "into", "is", "it",
    "its", "me", "my", "of", "on", "or", "so", "such", "that", "the", "their",
    "then", "there", "these", "they", "this", "to", "was", "what", "when",
    "which", "will", "with", "you", "your",
}

SEARCH_FIELDS = ["title", "ingredients", "text", "about", "how_to_use", "all"]

_STEMMER = PorterStemmer()


def tokenize(text: str) -> List[str]:
    """Lower-case, Porter-stemmed alphanumeric tokens without English stopwords."""
    tokens = re.findall(r"[a-z0-9]+", text.lower())
    return [_STEMMER.stem(t) for t in tokens if t not in ENGLISH_STOPWORDS]


def _field_text(record: Dict[str, Any], *keys: str) -> str:
    """First non-blank value among keys; lists are joined with spaces."""
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, list):
            value = " ".join(str(v) for v in value if v is not None)
        value = str(value).strip()
        if value:
            return value
    return ""


class SkincareBM25Index:
    """LexicalSearch implementation over the static skincare corpus.

    Instances hold their own index and are not shared across evaluation
    modes; build() once, then search() any number of times.
    """

    def __init__(
        self,
        dataset_path: Optional[Path] = None,
        field_boosts: Optional[Dict[str, float]] = None,
    ):
        self.dataset_path = Path(dataset_path) if dataset_path else DATASET_FILE
        self.field_boosts = field_boosts or BM25_FIELD_BOOSTS
        self.doc_ids: List[str] = []
        self.doc_types: List[str] = []
        self.indexes: Dict[str, BM25Okapi] = {}
        self._is_built = False

    def build(self) -> "SkincareBM25Index":
        """Load the dataset and build one BM25 index per field.

        Raises:
            FileNotFoundError: If the dataset file does not exist.
            ValueError: If the dataset is not a JSON array.
        """
        if not self.dataset_path.exists():
            raise FileNotFoundError(f"Dataset file not found: {self.dataset_path}")

        with open(self.dataset_path, "r", encoding="utf-8") as f:
            records = json.load(f)

        if not isinstance(records, list):
            raise ValueError(f"Dataset JSON must be an array: {self.dataset_path}")

        self.doc_ids = []
        self.doc_types = []
        field_tokens: Dict[str, List[List[str]]] = {name: [] for name in SEARCH_FIELDS}

        skipped = 0
        for record in records:
            doc_id = _field_text(record, "id")
            if not doc_id:
                skipped += 1
                continue

            doc_type = _field_text(record, "type")
            fields = {
                "title": _field_text(record, "title", "name"),
                "text": _field_text(record, "text"),
                "about": _field_text(record, "about"),
                "ingredients": _field_text(record, "ingredients"),
                "how_to_use": _field_text(record, "how_to_use", "howToUse"),
            }
            fields["all"] = " ".join(
                v for v in (
                    fields["title"], doc_type, fields["about"], fields["text"],
                    fields["ingredients"], fields["how_to_use"],
                ) if v
            )

            self.doc_ids.append(doc_id)
            self.doc_types.append(doc_type.lower() or "unknown")
            for name in SEARCH_FIELDS:
                field_tokens[name].append(tokenize(fields[name]))

        # BM25Okapi cannot average document length over an all-empty field
        self.indexes = {
            name: BM25Okapi(tokens)
            for name, tokens in field_tokens.items()
            if any(tokens)
        }
        self._is_built = True

        logger.info(
            f"BM25 index built: {len(self.doc_ids)} documents, "
            f"{len(self.indexes)} fields ({skipped} records without id skipped)"
        )
        return self

    def search(self, query: str, top_n: int) -> List[Candidate]:
        """Return up to top_n documents matching the query, best first.

        Raises:
            RuntimeError: If build() has not been called.
        """
        if not self._is_built:
            raise RuntimeError("BM25 index is not built. Call build() first.")

        tokens = tokenize(query or "")
        if not tokens or not self.doc_ids or top_n <= 0:
            return []

        scores = np.zeros(len(self.doc_ids))
        for name, index in self.indexes.items():
            scores += self.field_boosts.get(name, 1.0) * np.asarray(index.get_scores(tokens))

        order = np.argsort(-scores, kind="stable")
        results = []
        for i in order:
            if scores[i] <= 0.0 or len(results) >= top_n:
                break
            results.append(Candidate(
                doc_id=self.doc_ids[i],
                score=float(scores[i]),
                type=self.doc_types[i],
                source="bm25",
                payload={"doc_id": self.doc_ids[i], "type": self.doc_types[i], "source": "bm25"},
            ))

        logger.info(f"[BM25] tokens={len(tokens)} top_n={top_n} hits={len(results)}")
        return results
