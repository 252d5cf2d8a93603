"""Tests for the multi-field BM25 index.

## RAG Theory: Lexical Matching on Names

The lexical side of hybrid retrieval exists to catch exact product and
ingredient names, so the title and ingredients fields are boosted.

## Test Coverage

These tests verify:
1. Tokenization, stemming and stopword removal
2. Field boosts (a title match beats a body match)
3. List-valued ingredient fields are searchable
4. Records without id are skipped; types are normalized
5. Empty results for unmatched and stopword-only queries
6. Build errors and search-before-build
"""

import json
from pathlib import Path

import pytest

from skincare_rag.rag_pipeline.indexing.bm25_index import SkincareBM25Index, tokenize

DATASET = [
    {
        "id": "product_snail_essence",
        "type": "Product",
        "title": "Snail Mucin Essence",
        "text": "Hydrating essence for dull skin",
        "ingredients": ["snail secretion filtrate", "panthenol"],
    },
    {
        "id": "ingredient_niacinamide",
        "type": "ingredient",
        "title": "Niacinamide",
        "text": "Vitamin B3 that brightens dark spots and controls sebum",
    },
    {
        "id": "routine_evening",
        "type": "routine",
        "title": "Evening routine",
        "text": "Cleanse, tone, apply essence then moisturizer",
    },
    {
        "id": "product_barrier_cream",
        "type": "product",
        "name": "Barrier Cream",
        "about": "Rich cream with ceramides for dry skin",
    },
    {"type": "product", "title": "Record without id"},
    {"id": "misc_patch_test", "type": "", "text": "Patch test new actives on the jawline"},
]


@pytest.fixture
def dataset_path(tmp_path: Path) -> Path:
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps(DATASET), encoding="utf-8")
    return path


@pytest.fixture
def index(dataset_path: Path) -> SkincareBM25Index:
    return SkincareBM25Index(dataset_path).build()


class TestTokenize:
    def test_lowercases_and_drops_stopwords(self) -> None:
        assert tokenize("What is the BEST Vitamin-C serums?") == ["best", "vitamin", "c", "serum"]

    def test_stems_inflections(self) -> None:
        """Plural and inflected forms share a stem."""
        assert tokenize("peptides") == tokenize("Peptide")
        assert tokenize("exfoliating") == tokenize("Exfoliation")


class TestBuild:
    """Tests for SkincareBM25Index.build."""

    def test_skips_records_without_id(self, index: SkincareBM25Index) -> None:
        assert len(index.doc_ids) == 5
        assert "Record without id" not in " ".join(index.doc_ids)

    def test_normalizes_types(self, index: SkincareBM25Index) -> None:
        types = dict(zip(index.doc_ids, index.doc_types))

        assert types["product_snail_essence"] == "product"
        assert types["misc_patch_test"] == "unknown"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SkincareBM25Index(tmp_path / "absent.json").build()

    def test_non_array_dataset(self, tmp_path: Path) -> None:
        path = tmp_path / "dataset.json"
        path.write_text(json.dumps({"id": "x"}), encoding="utf-8")

        with pytest.raises(ValueError):
            SkincareBM25Index(path).build()

    def test_search_before_build(self, dataset_path: Path) -> None:
        with pytest.raises(RuntimeError):
            SkincareBM25Index(dataset_path).search("essence", 5)


class TestSearch:
    """Tests for SkincareBM25Index.search."""

    def test_title_match_ranks_first(self, index: SkincareBM25Index) -> None:
        results = index.search("essence", 5)

        assert [r.doc_id for r in results][:2] == ["product_snail_essence", "routine_evening"]
        assert results[0].score > results[1].score > 0.0

    def test_list_ingredients_searchable(self, index: SkincareBM25Index) -> None:
        results = index.search("panthenol", 5)

        assert [r.doc_id for r in results] == ["product_snail_essence"]
        assert results[0].type == "product"
        assert results[0].source == "bm25"
        assert results[0].payload["doc_id"] == "product_snail_essence"

    def test_name_used_as_title(self, index: SkincareBM25Index) -> None:
        assert index.search("barrier", 5)[0].doc_id == "product_barrier_cream"

    def test_unknown_type_returned(self, index: SkincareBM25Index) -> None:
        results = index.search("jawline", 5)

        assert results[0].doc_id == "misc_patch_test"
        assert results[0].type == "unknown"

    @pytest.mark.parametrize("query", ["sunscreen", "what is the", ""])
    def test_no_match(self, index: SkincareBM25Index, query: str) -> None:
        assert index.search(query, 5) == []

    def test_top_n(self, index: SkincareBM25Index) -> None:
        assert len(index.search("skin", 1)) == 1
        assert index.search("skin", 0) == []

    def test_plural_query_matches_singular_title(self, tmp_path: Path) -> None:
        """Stemming lets "peptides" find a document titled "Peptide"."""
        path = tmp_path / "dataset.json"
        path.write_text(json.dumps([
            {"id": "ingredient_peptide", "type": "ingredient", "title": "Peptide"},
            {"id": "ingredient_aha", "type": "ingredient", "title": "Glycolic acid"},
            {"id": "routine_exfoliation", "type": "routine", "title": "Exfoliation schedule"},
        ]), encoding="utf-8")
        index = SkincareBM25Index(path).build()

        assert [r.doc_id for r in index.search("peptides", 5)] == ["ingredient_peptide"]
        assert [r.doc_id for r in index.search("exfoliating", 5)] == ["routine_exfoliation"]
