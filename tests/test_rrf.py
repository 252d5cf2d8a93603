"""Tests for reciprocal rank fusion.

## RAG Theory: Rank-Based Fusion

Hybrid retrieval merges dense and BM25 rankings by position: each hit adds
weight / (k + rank). Documents found by both retrievers accumulate two
contributions, so agreement between retrievers is rewarded without ever
comparing their incompatible raw scores.

## Test Coverage

These tests verify:
1. Exact contribution arithmetic (single list and combined scenario)
2. Ordering: score descending, ties by ascending doc_id
3. Blank doc_ids consume a rank slot but never appear in the output
4. First-seen payload is kept when a document appears in both lists
5. Determinism across repeated calls
"""

import pytest

from skincare_rag.rag_pipeline.retrieval.rrf import fuse, reciprocal_rank_fusion
from skincare_rag.shared.schemas import Candidate

from conftest import ids, make_candidates


class TestRRFScoring:
    """Tests for the weighted reciprocal-rank arithmetic."""

    def test_single_hit_rank_one(self) -> None:
        """A rank-1 hit with weight 1.0 and k=60 scores 1/61."""
        fused = fuse(make_candidates([("d1", "product", 0.9)]), [], 60, 1.0, 1.0)

        assert ids(fused) == ["d1"]
        assert fused[0].score == pytest.approx(1 / 61)
        assert fused[0].score == pytest.approx(0.016393, abs=1e-6)

    def test_combined_scenario(self) -> None:
        """Documents in both lists accumulate both weighted contributions."""
        list_a = make_candidates([("d_a", "product", 0.9), ("d_b", "routine", 0.8)])
        list_b = make_candidates([("d_b", "routine", 12.0), ("d_c", "ingredient", 9.0)])

        fused = fuse(list_a, list_b, 60, 1.0, 1.25)
        scores = {c.doc_id: c.score for c in fused}

        assert ids(fused) == ["d_b", "d_c", "d_a"]
        assert scores["d_a"] == pytest.approx(1 / 61)
        assert scores["d_b"] == pytest.approx(1 / 62 + 1.25 / 61)
        assert scores["d_c"] == pytest.approx(1.25 / 62)
        assert scores["d_b"] == pytest.approx(0.036621, abs=1e-6)
        assert scores["d_c"] == pytest.approx(0.020161, abs=1e-6)

    def test_duplicate_within_list_adds_score(self) -> None:
        """A repeated doc_id adds a second contribution at its own rank."""
        fused = fuse(make_candidates([("d1", "product", 0.9), ("d1", "product", 0.8)]), [], 60, 1.0, 1.0)

        assert ids(fused) == ["d1"]
        assert fused[0].score == pytest.approx(1 / 61 + 1 / 62)

    def test_empty_inputs(self) -> None:
        """Two empty lists fuse into an empty list."""
        assert fuse([], [], 60, 1.0, 1.25) == []


class TestRRFOrdering:
    """Tests for tie-breaking and determinism."""

    def test_ties_broken_by_ascending_doc_id(self) -> None:
        """Equal fused scores are ordered by doc_id ascending."""
        list_a = make_candidates([("doc_z", "product", 0.9)])
        list_b = make_candidates([("doc_m", "product", 3.0)])

        fused = fuse(list_a, list_b, 60, 1.0, 1.0)

        assert ids(fused) == ["doc_m", "doc_z"]
        assert fused[0].score == pytest.approx(fused[1].score)

    def test_deterministic(self) -> None:
        """Identical inputs produce identical ordered output."""
        list_a = make_candidates([("a", "product", 0.9), ("b", "routine", 0.8), ("c", "product", 0.7)])
        list_b = make_candidates([("c", "product", 5.0), ("d", "ingredient", 4.0), ("a", "product", 3.0)])

        first = [(c.doc_id, c.score) for c in fuse(list_a, list_b, 60, 1.0, 1.25)]
        second = [(c.doc_id, c.score) for c in fuse(list_a, list_b, 60, 1.0, 1.25)]

        assert first == second


class TestRRFMalformedAndPayload:
    """Tests for blank doc_ids and payload retention."""

    def test_blank_doc_id_consumes_rank_slot(self) -> None:
        """A blank doc_id at rank 1 pushes the next hit to rank 2."""
        list_a = [Candidate(doc_id="  ", score=0.99), Candidate(doc_id="d1", score=0.9)]

        fused = fuse(list_a, [], 60, 1.0, 1.0)

        assert ids(fused) == ["d1"]
        assert fused[0].score == pytest.approx(1 / 62)

    def test_first_seen_payload_kept(self) -> None:
        """The first list's payload wins; later duplicates only add score."""
        dense = [Candidate.from_payload(0.8, {"doc_id": "d1", "type": "product", "title": "Toner", "source": "dense"})]
        lexical = [Candidate.from_payload(7.0, {"doc_id": "d1", "type": "product", "source": "bm25"})]

        fused = fuse(dense, lexical, 60, 1.0, 1.25)

        assert len(fused) == 1
        assert fused[0].payload["source"] == "dense"
        assert fused[0].title == "Toner"
        assert fused[0].score == pytest.approx(1 / 61 + 1.25 / 61)

    def test_doc_ids_unique(self) -> None:
        """Fused output never repeats a doc_id."""
        list_a = make_candidates([("a", "product", 0.9), ("b", "product", 0.8), ("a", "product", 0.7)])
        list_b = make_candidates([("b", "product", 3.0), ("a", "product", 2.0)])

        fused = fuse(list_a, list_b, 60, 1.0, 1.25)

        assert sorted(ids(fused)) == ["a", "b"]


class TestRRFResult:
    """Tests for the logging metadata returned with the fusion."""

    def test_overlap_and_source_counts(self) -> None:
        """Overlap counts doc_ids present in both lists."""
        list_a = make_candidates([("a", "product", 0.9), ("b", "routine", 0.8)])
        list_b = make_candidates([("b", "routine", 5.0), ("c", "ingredient", 4.0), ("", "product", 1.0)])

        result = reciprocal_rank_fusion(list_a, list_b, k=60, weight_a=1.0, weight_b=1.25)

        assert result.overlap_count == 1
        assert result.source_counts == {"a": 2, "b": 2}
        assert result.merge_time_ms >= 0.0
        assert ids(result.results) == ["b", "c", "a"]
