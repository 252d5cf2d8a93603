"""Tests for WeaviateVectorSearch with an in-memory client.

## Test Coverage

These tests verify:
1. Distance is converted to a non-negative similarity score
2. Object properties become Candidate payloads tagged as dense hits
3. Query arguments (collection, vector, limit)
4. Weaviate errors are wrapped as VectorSearchError
"""

from types import SimpleNamespace

import pytest
from weaviate.exceptions import WeaviateBaseError

from skincare_rag.rag_pipeline.indexing.weaviate_client import WeaviateVectorSearch
from skincare_rag.shared.errors import VectorSearchError


class FakeQuery:
    def __init__(self, objects=None, error=None):
        self.objects = objects or []
        self.error = error
        self.kwargs = None

    def near_vector(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return SimpleNamespace(objects=self.objects)


class FakeClient:
    def __init__(self, query: FakeQuery):
        self.query = query
        self.requested = []
        self.closed = False
        self.collections = self

    def get(self, name):
        self.requested.append(name)
        return SimpleNamespace(query=self.query)

    def close(self):
        self.closed = True


def weaviate_object(properties, distance):
    return SimpleNamespace(properties=properties, metadata=SimpleNamespace(distance=distance))


class TestSearch:
    def test_converts_objects(self) -> None:
        query = FakeQuery([
            weaviate_object({"doc_id": "product_a", "type": "Product", "title": "Cream"}, 0.25),
            weaviate_object({"doc_id": "routine_b", "type": "routine"}, 1.4),
            weaviate_object({"doc_id": "ingredient_c", "type": "ingredient"}, None),
        ])
        client = FakeClient(query)

        results = WeaviateVectorSearch(client).search("Skincare_box", [0.1, 0.2], 3)

        assert client.requested == ["Skincare_box"]
        assert query.kwargs["near_vector"] == [0.1, 0.2]
        assert query.kwargs["limit"] == 3
        assert [r.doc_id for r in results] == ["product_a", "routine_b", "ingredient_c"]
        assert results[0].score == pytest.approx(0.75)
        assert results[0].type == "product"
        assert results[0].source == "dense"
        assert results[1].score == 0.0
        assert results[2].score == 0.0

    def test_wraps_weaviate_errors(self) -> None:
        client = FakeClient(FakeQuery(error=WeaviateBaseError("grpc unavailable")))

        with pytest.raises(VectorSearchError):
            WeaviateVectorSearch(client).search("Skincare_box", [0.1], 5)

    def test_close(self) -> None:
        client = FakeClient(FakeQuery())
        search = WeaviateVectorSearch(client)

        search.close()

        assert client.closed
