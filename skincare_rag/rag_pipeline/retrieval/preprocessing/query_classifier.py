"""Keyword detectors for questions that need routine or ingredient documents.

## RAG Theory: Cheap Gap Detection

Step-back gap filling costs an extra LLM call, an embedding and a vector
search. Most questions never need it, so a zero-cost lexical check decides
whether a question is *structurally* a routine question (ordering,
frequency, combining products, safety) or an actives question (named active
ingredients and exfoliation). Only those questions are eligible for a
gap-fill pass.

Matching is plain case-insensitive substring search, so short keywords such
as "aha" or "order" also match inside longer words ("disorder").
"""

from typing import Iterable, List

RULE_KEYWORDS: List[str] = [
    "how often",
    "frequency",
    "order",
    "routine",
    "steps",
    "combine",
    "together",
    "avoid",
    "safe",
    "should i",
    "can i",
]

ACTIVES_KEYWORDS: List[str] = [
    "retinol",
    "retinal",
    "retinoid",
    "vitamin c",
    "aha",
    "bha",
    "pha",
    "niacinamide",
    "tranexamic",
    "peptides",
    "acid",
    "exfol",
    "peel",
]


def _contains_any(question: str, keywords: Iterable[str]) -> bool:
    text = (question or "").lower()
    return any(keyword in text for keyword in keywords)


def looks_like_rule_question(question: str) -> bool:
    """True if the question asks about ordering, frequency, combining or safety."""
    return _contains_any(question, RULE_KEYWORDS)


def looks_like_actives_question(question: str) -> bool:
    """True if the question names an active ingredient or exfoliation."""
    return _contains_any(question, ACTIVES_KEYWORDS)
