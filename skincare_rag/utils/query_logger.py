"""Query logging for interactive ask sessions.

Saves each answered question to a JSON file for:
- Building new evaluation questions from real usage
- Comparing retrieval modes on the same question after the fact
- Debugging context and answers
"""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from skincare_rag.config import QUERY_LOG_FILE
from skincare_rag.rag_pipeline.generation.answer_generator import AskResponse
from skincare_rag.shared.schemas import Candidate


def log_query(
    query: str,
    response: AskResponse,
    top_k: int,
    collection_name: str = "",
    log_file: Optional[Path] = None,
) -> str:
    """Append a query execution to the JSON trace file.

    Args:
        query: Original user question.
        response: AskResponse returned by AnswerGenerator.ask().
        top_k: Final ranking size used.
        collection_name: Vector collection name.
        log_file: Override for QUERY_LOG_FILE.

    Returns:
        Query ID (UUID string).
    """
    log_file = Path(log_file) if log_file else QUERY_LOG_FILE
    record = {
        "id": str(uuid.uuid4()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": {"query": query},
        "retrieval": _build_retrieval(response.mode, top_k, response.hits, collection_name),
        "generation": _build_generation(response),
    }

    # Load existing, append, save
    log_file.parent.mkdir(parents=True, exist_ok=True)
    data = {"queries": []}
    if log_file.exists():
        try:
            data = json.loads(log_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            data = {"queries": []}

    data["queries"].append(record)
    log_file.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    return record["id"]


def _build_retrieval(mode: str, top_k: int, hits: List[Candidate], collection: str) -> Dict:
    """Build retrieval section from the ranked hits."""
    return {
        "mode": mode,
        "top_k": top_k,
        "collection": collection,
        "documents": [
            {"rank": i + 1, **hit.to_dict(), "score": round(hit.score, 4)}
            for i, hit in enumerate(hits)
        ],
    }


def _build_generation(response: AskResponse) -> Dict:
    """Build generation section from AskResponse."""
    if not response.hits:
        return {"enabled": False, "answer": response.answer}
    return {
        "enabled": True,
        "answer": response.answer,
        "time_ms": round(response.generation_time_ms, 1),
    }
