"""Tests for step-back gap filling.

## RAG Theory: Additive Patching

The gap filler may only append routine/ingredient documents after the
existing ranking, and must not touch any collaborator when the question
does not need a patch or the ranking already covers it.

## Test Coverage

These tests verify:
1. Early exit with zero collaborator calls (no keywords, type already present)
2. Presence is checked only within the first top_k entries
3. Blank step-back note leaves the ranking unchanged
4. Patches are filtered to the missing types and appended after the spine
5. A full spine leaves no room for patches
6. merge_patches deduplication and patch cap
7. Collaborator errors propagate
"""

import pytest

from conftest import FakeEmbedder, FakeTextGenerator, FakeVectorSearch, ids, make_candidates
from skincare_rag.rag_pipeline.retrieval.gap_filler import (
    StepBackGapFiller,
    analyze_gaps,
    has_type_in_top_k,
    merge_patches,
)
from skincare_rag.rag_pipeline.retrieval.preprocessing.query_preprocessing import STEP_BACK_PROMPT
from skincare_rag.shared.errors import CollaboratorError
from skincare_rag.shared.schemas import Candidate

RULE_QUESTION = "What order should I apply toner and essence?"
COMBINED_QUESTION = "Can I combine retinol with vitamin C?"

STEPBACK_HITS = make_candidates([
    ("product_9", "product", 0.80),
    ("routine_order", "routine", 0.79),
    ("routine_layering", "routine", 0.78),
    ("routine_evening", "routine", 0.77),
    ("ingredient_retinol", "ingredient", 0.76),
])


def build_filler(vector_search, embedder=None, generator=None) -> StepBackGapFiller:
    return StepBackGapFiller(
        embedder=embedder or FakeEmbedder(),
        vector_search=vector_search,
        generator=generator or FakeTextGenerator(),
        collection="test_collection",
    )


class TestEarlyExit:
    """Tests for the no-gap path."""

    def test_no_keywords_makes_no_calls(self) -> None:
        """A plain product question returns the same list untouched."""
        embedder, generator = FakeEmbedder(), FakeTextGenerator()
        vector = FakeVectorSearch(STEPBACK_HITS)
        filler = build_filler(vector, embedder, generator)
        ranking = make_candidates([("product_1", "product", 0.9)])

        result = filler.fill("Best moisturizer for dry skin", ranking, top_k=5)

        assert result is ranking
        assert embedder.calls == [] and generator.calls == [] and vector.calls == []

    def test_type_already_present(self) -> None:
        """A rule question with a routine doc in top_k needs no patch."""
        generator = FakeTextGenerator()
        vector = FakeVectorSearch(STEPBACK_HITS)
        filler = build_filler(vector, generator=generator)
        ranking = make_candidates([
            ("product_1", "product", 0.9),
            ("routine_order", "ROUTINE", 0.8),
        ])

        result = filler.fill(RULE_QUESTION, ranking, top_k=5)

        assert result is ranking
        assert generator.calls == [] and vector.calls == []

    def test_type_beyond_top_k_counts_as_missing(self) -> None:
        """Only the first top_k entries are inspected."""
        ranking = make_candidates([
            ("product_1", "product", 0.9),
            ("product_2", "product", 0.8),
            ("routine_order", "routine", 0.7),
        ])

        assert not has_type_in_top_k(ranking, 2, "routine")
        assert analyze_gaps(RULE_QUESTION, ranking, 2).need_routine
        assert not analyze_gaps(RULE_QUESTION, ranking, 3).has_gap


class TestPatching:
    """Tests for the step-back pass."""

    def test_blank_note_skips_search(self) -> None:
        """A blank step-back note returns the ranking without embedding."""
        embedder = FakeEmbedder()
        generator = FakeTextGenerator(default="   ")
        vector = FakeVectorSearch(STEPBACK_HITS)
        filler = build_filler(vector, embedder, generator)
        ranking = make_candidates([("product_1", "product", 0.9)])

        result = filler.fill(RULE_QUESTION, ranking, top_k=5)

        assert result is ranking
        assert len(generator.calls) == 1
        assert embedder.calls == [] and vector.calls == []

    def test_appends_routine_patches(self) -> None:
        """Up to two routine hits are appended after the spine."""
        embedder = FakeEmbedder()
        generator = FakeTextGenerator(default="step back note")
        vector = FakeVectorSearch(STEPBACK_HITS)
        filler = build_filler(vector, embedder, generator)
        ranking = make_candidates([
            ("product_1", "product", 0.9),
            ("product_2", "product", 0.8),
        ])

        result = filler.fill(RULE_QUESTION, ranking, top_k=5)

        assert ids(result) == ["product_1", "product_2", "routine_order", "routine_layering"]
        assert generator.calls == [(STEP_BACK_PROMPT, RULE_QUESTION)]
        assert embedder.calls == ["step back note"]
        assert vector.calls[0][0] == "test_collection"
        assert vector.calls[0][2] == 5

    def test_patches_only_needed_types(self) -> None:
        """Products from the step-back search are never patched in."""
        vector = FakeVectorSearch(make_candidates([
            ("product_9", "product", 0.9),
            ("ingredient_retinol", "ingredient", 0.8),
            ("routine_actives", "routine", 0.7),
        ]))
        filler = build_filler(vector)
        ranking = make_candidates([("product_1", "product", 0.9)])

        result = filler.fill(COMBINED_QUESTION, ranking, top_k=5)

        assert ids(result) == ["product_1", "ingredient_retinol", "routine_actives"]

    def test_full_spine_leaves_no_room(self) -> None:
        """When the spine already has top_k entries, patches are cut off."""
        filler = build_filler(FakeVectorSearch(STEPBACK_HITS))
        ranking = make_candidates([
            ("product_1", "product", 0.9),
            ("product_2", "product", 0.8),
            ("product_3", "product", 0.7),
        ])

        result = filler.fill(RULE_QUESTION, ranking, top_k=3)

        assert ids(result) == ["product_1", "product_2", "product_3"]

    def test_collaborator_error_propagates(self) -> None:
        """Search failures are not swallowed."""
        filler = build_filler(FakeVectorSearch(fail=True))
        ranking = make_candidates([("product_1", "product", 0.9)])

        with pytest.raises(CollaboratorError):
            filler.fill(RULE_QUESTION, ranking, top_k=5)


class TestMergePatches:
    """Tests for merge_patches."""

    def test_dedup_and_cap(self) -> None:
        """Spine duplicates and blanks drop; patches already present are skipped."""
        spine = make_candidates([
            ("a", "product", 0.9),
            ("", "product", 0.85),
            ("a", "product", 0.8),
            ("b", "product", 0.7),
        ])
        patches = make_candidates([
            ("b", "routine", 0.6),
            ("r1", "routine", 0.5),
            ("r2", "routine", 0.4),
            ("r3", "routine", 0.3),
        ])

        merged = merge_patches(spine, patches, top_k=10, max_add=2)

        assert ids(merged) == ["a", "b", "r1", "r2"]

    def test_truncates_to_top_k(self) -> None:
        spine = make_candidates([("a", "product", 0.9)])
        patches = make_candidates([("r1", "routine", 0.5), ("r2", "routine", 0.4)])

        assert ids(merge_patches(spine, patches, top_k=2)) == ["a", "r1"]

    def test_blank_patch_ignored(self) -> None:
        spine = make_candidates([("a", "product", 0.9)])
        patches = [Candidate(doc_id="  ", score=0.5, type="routine")]

        assert ids(merge_patches(spine, patches, top_k=5)) == ["a"]
