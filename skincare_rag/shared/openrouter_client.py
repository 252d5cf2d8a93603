"""Unified OpenRouter API client.

## RAG Theory: Centralized LLM Communication

All model calls in the pipeline (HyDE rewrite, step-back notes, answer
synthesis, query embeddings) go through this module so that error handling
and request logging live in one place.

Collaborator calls are at-most-once: a failed request is not retried. A
provider error aborts the retrieval request (or the evaluation mode) that
issued it, which keeps evaluation runs honest about flaky providers.

## Library Usage

Uses `requests` for HTTP calls against the OpenAI-compatible OpenRouter
endpoints `/chat/completions` and `/embeddings`.

## Data Flow

1. Module (preprocessing/generation/embedding) needs a model call
2. Imports call_chat_completion() or call_embeddings() from here
3. Constructs messages in OpenAI format (or a list of input texts)
4. Receives response string / vectors or raises OpenRouterError
"""

from typing import Any, Dict, List, Optional

import requests

from skincare_rag.config import OPENROUTER_API_KEY, OPENROUTER_BASE_URL, REQUEST_TIMEOUT
from skincare_rag.shared.errors import CollaboratorError
from skincare_rag.shared.files import setup_logging

logger = setup_logging(__name__)


class OpenRouterError(CollaboratorError):
    """Base exception for OpenRouter API errors."""
    pass


class RateLimitError(OpenRouterError):
    """Raised when the API answers 429."""
    pass


class APIError(OpenRouterError):
    """Raised when API returns an error response."""
    pass


def _headers(api_key: Optional[str]) -> Dict[str, str]:
    key = api_key or OPENROUTER_API_KEY
    if not key:
        raise OpenRouterError("OPENROUTER_API_KEY not set in environment")
    return {
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
    }


def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: int) -> Dict[str, Any]:
    """Single POST with error mapping. Returns the decoded JSON body."""
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise OpenRouterError(f"Request failed: {exc}") from exc

    if response.status_code == 429:
        raise RateLimitError("Rate limited by OpenRouter")

    if response.status_code != 200:
        try:
            error_detail = response.json().get("error", {}).get("message", response.text)
        except ValueError:
            error_detail = response.text
        raise APIError(f"API error {response.status_code}: {error_detail}")

    try:
        return response.json()
    except ValueError as exc:
        raise APIError(f"Invalid JSON in response: {exc}") from exc


def call_chat_completion(
    messages: List[Dict[str, str]],
    model: str,
    temperature: float = 0.3,
    max_tokens: int = 1024,
    timeout: int = REQUEST_TIMEOUT,
    api_key: Optional[str] = None,
) -> str:
    """Call OpenRouter chat completion API.

    Used by:
    - preprocessing: HyDE rewrite, step-back notes
    - generation: Answer synthesis

    Args:
        messages: List of message dicts with 'role' and 'content' keys.
            Example: [{"role": "user", "content": "Hello"}]
        model: OpenRouter model ID (e.g., "openai/gpt-4.1-mini").
        temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens: Maximum tokens in response.
        timeout: Request timeout in seconds.
        api_key: Override for OPENROUTER_API_KEY.

    Returns:
        The assistant's response content as a string (may be empty).

    Raises:
        RateLimitError: If the API answers 429.
        APIError: On non-200 responses or malformed bodies.
        OpenRouterError: On network failures or missing API key.
    """
    url = f"{OPENROUTER_BASE_URL}/chat/completions"
    payload: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    result = _post(url, payload, _headers(api_key), timeout)
    try:
        content = result["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as exc:
        raise APIError(f"Unexpected chat response shape: {exc}") from exc

    chars_in = sum(len(m.get("content", "")) for m in messages)
    logger.info(f"[LLM] model={model} chars_in={chars_in} chars_out={len(content)}")
    return content


def call_embeddings(
    inputs: List[str],
    model: str,
    timeout: int = REQUEST_TIMEOUT,
    api_key: Optional[str] = None,
) -> List[List[float]]:
    """Call OpenRouter embeddings API for a batch of texts.

    Args:
        inputs: Texts to embed.
        model: Embedding model ID (e.g., "openai/text-embedding-3-small").
        timeout: Request timeout in seconds.
        api_key: Override for OPENROUTER_API_KEY.

    Returns:
        One embedding vector per input, in input order.

    Raises:
        APIError: On error responses or when the vector count mismatches.
        OpenRouterError: On network failures or missing API key.
    """
    url = f"{OPENROUTER_BASE_URL}/embeddings"
    payload = {"model": model, "input": inputs}

    result = _post(url, payload, _headers(api_key), timeout)
    try:
        data = sorted(result.get("data", []), key=lambda item: item.get("index", 0))
        embeddings = [item["embedding"] for item in data]
    except (KeyError, TypeError, AttributeError) as exc:
        raise APIError(f"Unexpected embeddings response shape: {exc}") from exc

    if len(embeddings) != len(inputs):
        raise APIError(
            f"Expected {len(inputs)} embeddings, got {len(embeddings)}"
        )

    logger.info(f"[EMBED] model={model} inputs={len(inputs)}")
    return embeddings
