"""Query embedding via the OpenRouter embeddings endpoint.

Dense retrieval embeds one text per call: the raw question, its HyDE
rewrite, or a step-back note. The vector must come from the same model
that embedded the collection, so the model is fixed per instance.
"""

from typing import List, Optional

from skincare_rag.config import EMBEDDING_DIM, EMBEDDING_MODEL
from skincare_rag.shared.openrouter_client import APIError, call_embeddings


class OpenRouterEmbedder:
    """EmbeddingProvider backed by OpenRouter."""

    def __init__(
        self,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIM,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self.dimensions = dimensions
        self.api_key = api_key

    def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            APIError: If the provider returns a vector of the wrong size.
            OpenRouterError: On any other provider failure.
        """
        vector = call_embeddings([text], model=self.model, api_key=self.api_key)[0]
        if len(vector) != self.dimensions:
            raise APIError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(vector)}"
            )
        return [float(v) for v in vector]
