"""Tests for similarity scoring and ordering."""

from __future__ import annotations

from functools import cmp_to_key

import pytest

from notesage.errors import DimensionMismatch
from notesage.retrieval.ranking import by_similarity, rank_by_similarity, similarity


class TestSimilarity:
    def test_dot_product(self):
        assert similarity([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == pytest.approx(32.0)

    def test_symmetric(self):
        a = [0.3, -0.2, 0.9]
        b = [0.1, 0.8, -0.4]
        assert similarity(a, b) == similarity(b, a)

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch) as exc_info:
            similarity([1, 2], [1, 2, 3])
        assert exc_info.value.left == 2
        assert exc_info.value.right == 3

    def test_dimension_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            similarity([1.0], [])

    def test_empty_vectors(self):
        assert similarity([], []) == 0.0


class TestBySimilarity:
    def test_sorts_descending(self):
        reference = [1.0, 0.0]
        vectors = [[0.1, 0.9], [0.9, 0.1], [0.5, 0.5]]
        ordered = sorted(vectors, key=cmp_to_key(by_similarity(reference)))
        assert ordered == [[0.9, 0.1], [0.5, 0.5], [0.1, 0.9]]

    def test_equal_scores_compare_equal(self):
        compare = by_similarity([1.0, 0.0])
        assert compare([0.5, 0.1], [0.5, 0.9]) == 0


class TestRankBySimilarity:
    def test_pairs_items_with_scores(self):
        items = [("low", [0.1, 0.0]), ("high", [0.9, 0.0])]
        ranked = rank_by_similarity(items, [1.0, 0.0], key=lambda item: item[1])
        assert [item[0] for item, _ in ranked] == ["high", "low"]
        assert ranked[0][1] == pytest.approx(0.9)

    def test_stable_for_ties(self):
        items = ["first", "second", "third"]
        ranked = rank_by_similarity(items, [1.0], key=lambda _: [0.5])
        assert [item for item, _ in ranked] == items

    def test_mismatch_propagates(self):
        with pytest.raises(DimensionMismatch):
            rank_by_similarity([[1.0, 2.0]], [1.0], key=lambda v: v)
