"""Central configuration for the skincare RAG pipeline.

Contains:
- Project paths (dataset, evaluation questions, reports, query traces)
- OpenRouter settings for embeddings and chat generation (via .env)
- Weaviate vector database settings
- Retrieval parameters (hybrid fusion, step-back gap fill, type diversity)
- Evaluation defaults
"""
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv
import os

# ============================================================================
# PROJECT PATHS
# ============================================================================

PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# Static skincare corpus (products, ingredients, routines, rules)
DATASET_FILE = DATA_DIR / "skincare_dataset.json"

# Evaluation inputs/outputs
EVAL_DIR = DATA_DIR / "evaluation"
EVAL_QUESTIONS_FILE = EVAL_DIR / "eval_questions.jsonl"
EVAL_RESULTS_DIR = EVAL_DIR / "results"

# Interactive ask traces
QUERY_LOG_FILE = EVAL_DIR / "ask_query_traces.json"


# ============================================================================
# OPENROUTER SETTINGS
# ============================================================================

load_dotenv(PROJECT_ROOT / ".env")

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "openai/text-embedding-3-small")
EMBEDDING_DIM = 1536

# Answer synthesis
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "openai/gpt-4.1-mini")

# HyDE rewrite and step-back notes
PREPROCESSING_MODEL = os.getenv("PREPROCESSING_MODEL", "openai/gpt-4.1-mini")

# Seconds. Collaborator calls are single-attempt, this is the only bound.
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "60"))


# ============================================================================
# WEAVIATE SETTINGS
# ============================================================================

WEAVIATE_HOST = os.getenv("WEAVIATE_HOST", "localhost")
WEAVIATE_HTTP_PORT = int(os.getenv("WEAVIATE_HTTP_PORT", "8080"))
WEAVIATE_GRPC_PORT = int(os.getenv("WEAVIATE_GRPC_PORT", "50051"))

# Weaviate capitalizes collection names, so use the canonical form here
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "Skincare_box")


# ============================================================================
# RETRIEVAL SETTINGS
# ============================================================================

DEFAULT_TOP_K = 5

# Hybrid retrieval: candidate pool sizes and RRF parameters
DENSE_TOP_N = 25
BM25_TOP_N = 25
RRF_K = 60
DENSE_WEIGHT = 1.0
BM25_WEIGHT = 1.25

# Step-back gap fill
STEPBACK_SEARCH_SIZE = 5
STEPBACK_MAX_PATCHES = 2

# Lexical field boosts (title and ingredients are the strongest signals)
BM25_FIELD_BOOSTS: Dict[str, float] = {
    "title": 3.0,
    "ingredients": 2.5,
    "text": 1.5,
    "about": 1.2,
    "how_to_use": 1.2,
    "all": 1.0,
}

# Optional type-aware reranking
DIVERSITY_RELATIVE_DELTA = 0.10
DIVERSITY_MAX_SAME_TYPE = 3


# ============================================================================
# EVALUATION SETTINGS
# ============================================================================

EVAL_TOP_K = 5

EVAL_DEFAULT_MODES: List[str] = [
    "baseline",
    "hyde",
    "hyde_stepback_fallback",
]

# One worker per mode is enough; each mode runs its questions sequentially
EVAL_MAX_WORKERS = 6
