"""Weaviate client wrapper for the skincare collection.

Provides:
- Connecting to the local Weaviate instance
- Vector similarity search returning Candidate records
- Collection size lookup (sanity check before evaluation)

Uses Weaviate Python client v4 (requires gRPC). The collection is populated
by a separate ingestion job; this module only reads from it.
"""

from typing import List, Optional

import weaviate
from weaviate.classes.query import MetadataQuery
from weaviate.exceptions import WeaviateBaseError

from skincare_rag.config import (
    WEAVIATE_HOST,
    WEAVIATE_HTTP_PORT,
    WEAVIATE_GRPC_PORT,
)
from skincare_rag.shared.errors import VectorSearchError
from skincare_rag.shared.files import setup_logging
from skincare_rag.shared.schemas import Candidate

logger = setup_logging(__name__)


def get_client() -> weaviate.WeaviateClient:
    """
    Create and return a Weaviate client connected to local instance.

    Returns:
        Connected WeaviateClient instance.

    Raises:
        weaviate.exceptions.WeaviateConnectionError: If connection fails.
    """
    client = weaviate.connect_to_local(
        host=WEAVIATE_HOST,
        port=WEAVIATE_HTTP_PORT,
        grpc_port=WEAVIATE_GRPC_PORT,
    )
    return client


def get_collection_count(
    client: weaviate.WeaviateClient,
    collection_name: str,
) -> int:
    """
    Get the number of objects in a collection.

    Args:
        client: Connected Weaviate client.
        collection_name: Name of the collection.

    Returns:
        Number of objects in the collection.
    """
    collection = client.collections.get(collection_name)
    response = collection.aggregate.over_all(total_count=True)
    return response.total_count


class WeaviateVectorSearch:
    """VectorSearch over a Weaviate collection with cosine distance.

    Scores are reported as similarity (1 - distance, floored at 0) so higher
    is better, matching the ordering contract of every other retriever.
    """

    def __init__(self, client: Optional[weaviate.WeaviateClient] = None):
        self._client = client

    @property
    def client(self) -> weaviate.WeaviateClient:
        if self._client is None:
            self._client = get_client()
        return self._client

    def search(self, collection: str, vector: List[float], top_k: int) -> List[Candidate]:
        """Return the top_k nearest objects as Candidates, best first.

        Raises:
            VectorSearchError: If the Weaviate query fails.
        """
        try:
            response = self.client.collections.get(collection).query.near_vector(
                near_vector=vector,
                limit=top_k,
                return_metadata=MetadataQuery(distance=True),
            )
        except WeaviateBaseError as exc:
            raise VectorSearchError(f"Weaviate search on {collection} failed: {exc}") from exc

        results = []
        for obj in response.objects:
            distance = obj.metadata.distance if obj.metadata.distance is not None else 1.0
            payload = dict(obj.properties)
            payload.setdefault("source", "dense")
            results.append(Candidate.from_payload(max(0.0, 1.0 - distance), payload))

        logger.info(f"[VECTOR] collection={collection} top_k={top_k} hits={len(results)}")
        return results

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
