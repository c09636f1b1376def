"""Dot-product similarity and similarity ordering.

Embeddings arrive normalized from the provider, so the dot product is
used directly as a cosine similarity.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

import numpy as np

from notesage.errors import DimensionMismatch

T = TypeVar("T")

Vector = Sequence[float]


def similarity(a: Vector, b: Vector) -> float:
    """Dot product of two equal-length vectors.

    Raises:
        DimensionMismatch: if the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    return float(np.dot(np.asarray(a, dtype=float), np.asarray(b, dtype=float)))


def by_similarity(reference: Vector) -> Callable[[Vector, Vector], int]:
    """Comparator ordering vectors by descending similarity to reference.

    Use with functools.cmp_to_key.
    """
    def compare(left: Vector, right: Vector) -> int:
        diff = similarity(right, reference) - similarity(left, reference)
        return (diff > 0) - (diff < 0)

    return compare


def rank_by_similarity(
    items: Iterable[T],
    reference: Vector,
    key: Callable[[T], Vector],
) -> list[tuple[T, float]]:
    """Pair each item with its similarity to reference, best first.

    The sort is stable, so items with equal scores keep their input order.
    """
    scored = [(item, similarity(key(item), reference)) for item in items]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored
