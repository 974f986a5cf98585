"""Hamming distance between binary descriptors and nearest-neighbour search over them."""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

import numpy as np


def _as_bytes(descriptor) -> np.ndarray:
    data = np.ascontiguousarray(np.asarray(descriptor))
    if data.ndim != 1:
        data = data.reshape(-1)
    return data.view(np.uint8)


def descriptor_distance(a, b) -> int:
    """Number of differing bits between two binary descriptors of the same byte length."""
    bytes_a = _as_bytes(a)
    bytes_b = _as_bytes(b)
    if bytes_a.shape != bytes_b.shape:
        raise ValueError("descriptors must have the same length")
    return int(np.unpackbits(np.bitwise_xor(bytes_a, bytes_b)).sum())


class BestMatches(NamedTuple):
    """Result of a nearest-neighbour search: the best distance and index, and the runner-up distance.

    ``index`` is ``None`` when no candidate beat the starting distance.
    """

    distance: int
    index: int | None
    second_distance: int


def _pairs(candidates) -> Iterable[tuple[int, object]]:
    if isinstance(candidates, np.ndarray):
        if candidates.ndim != 2:
            raise ValueError("a candidate array must be two-dimensional")
        return enumerate(candidates)
    return candidates


def best_two_matches(query, candidates) -> BestMatches:
    """Find the closest and second-closest candidates to ``query``.

    ``candidates`` is an iterable of ``(index, descriptor)`` pairs, or a 2-D array whose
    rows are indexed from 0. Both distances start at the descriptor's bit count, and a
    candidate replaces one only when it is strictly closer, so the earliest of equal
    candidates wins.
    """
    query_bytes = _as_bytes(query)
    start = 8 * query_bytes.size
    best, second = start, start
    best_index: int | None = None
    for index, descriptor in _pairs(candidates):
        dist = descriptor_distance(query_bytes, descriptor)
        if dist < best:
            second = best
            best = dist
            best_index = int(index)
        elif dist < second:
            second = dist
    return BestMatches(best, best_index, second)