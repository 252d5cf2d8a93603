"""Retrieval mode registry.

## RAG Theory: Composable Retrieval Strategies

Each retrieval mode is a combination of three independent techniques:

1. **HyDE rewrite** - embed a hypothetical answer note instead of the raw
   question (Gao et al., 2022), which lands closer to document embeddings
2. **Hybrid fusion** - add BM25 candidates and merge with RRF so exact
   product/ingredient names are not lost
3. **Step-back gap fill** - patch missing routine/ingredient documents via a
   principle-level secondary search

Resolving the mode once into capability flags keeps every later stage
free of string comparisons.

## Data Flow

1. Caller passes a raw mode string (CLI flag, evaluation config)
2. resolve_mode() normalizes it; unknown or empty input -> BASELINE
3. Orchestrator reads uses_rewrite / uses_hybrid / uses_gap_fill
"""

from enum import Enum
from typing import List, Optional, Union

from skincare_rag.shared.files import setup_logging

logger = setup_logging(__name__)


class Mode(str, Enum):
    """Canonical retrieval modes.

    - BASELINE: dense search on the raw question.
    - HYDE: dense search on a HyDE rewrite.
    - HYBRID: raw-question dense + BM25, fused with RRF.
    - HYDE_HYBRID: HyDE dense + raw-question BM25, fused with RRF.
    - HYDE_STEPBACK_FALLBACK: HYDE plus step-back gap fill.
    - HYDE_HYBRID_STEPBACK_FALLBACK: HYDE_HYBRID plus step-back gap fill.
    """

    BASELINE = "baseline"
    HYDE = "hyde"
    HYBRID = "hybrid"
    HYDE_HYBRID = "hyde_hybrid"
    HYDE_STEPBACK_FALLBACK = "hyde_stepback_fallback"
    HYDE_HYBRID_STEPBACK_FALLBACK = "hyde_hybrid_stepback_fallback"

    @property
    def uses_rewrite(self) -> bool:
        return self in _REWRITE_MODES

    @property
    def uses_hybrid(self) -> bool:
        return self in _HYBRID_MODES

    @property
    def uses_gap_fill(self) -> bool:
        return self in _GAP_FILL_MODES


_REWRITE_MODES = frozenset({
    Mode.HYDE,
    Mode.HYDE_HYBRID,
    Mode.HYDE_STEPBACK_FALLBACK,
    Mode.HYDE_HYBRID_STEPBACK_FALLBACK,
})

_HYBRID_MODES = frozenset({
    Mode.HYBRID,
    Mode.HYDE_HYBRID,
    Mode.HYDE_HYBRID_STEPBACK_FALLBACK,
})

_GAP_FILL_MODES = frozenset({
    Mode.HYDE_STEPBACK_FALLBACK,
    Mode.HYDE_HYBRID_STEPBACK_FALLBACK,
})

# Older name for HYDE_HYBRID still used by saved request payloads
_ALIASES = {
    "hyde_hybrid_rrf": Mode.HYDE_HYBRID,
}


def resolve_mode(raw: Optional[Union[str, Mode]]) -> Mode:
    """Normalize a mode name into a Mode.

    Matching is case-insensitive and ignores surrounding whitespace.
    Unknown or empty input resolves to BASELINE; this never raises.

    Example:
        >>> resolve_mode(" HyDE_Hybrid ").uses_hybrid
        True
        >>> resolve_mode("unknown")
        <Mode.BASELINE: 'baseline'>
    """
    if isinstance(raw, Mode):
        return raw
    if raw is None or not str(raw).strip():
        return Mode.BASELINE

    name = str(raw).strip().lower()
    if name in _ALIASES:
        return _ALIASES[name]
    try:
        return Mode(name)
    except ValueError:
        logger.info(f"Unknown retrieval mode '{raw}', using baseline")
        return Mode.BASELINE


def list_modes() -> List[str]:
    """Canonical mode names in declaration order."""
    return [mode.value for mode in Mode]
