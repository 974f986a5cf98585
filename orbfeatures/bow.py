"""Descriptor matching restricted to features that share a vocabulary node."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import NamedTuple

import numpy as np

from orbfeatures.distance import best_two_matches
from orbfeatures.histogram import RotationHistogram
from orbfeatures.keypoint import KeyPoint

TH_LOW = 50


class BowMatches(NamedTuple):
    """Result of :func:`search_by_bow`.

    ``matches12[i]`` is the index in the second set matched to feature ``i`` of the
    first, or ``None``.
    """

    count: int
    matches12: list[int | None]


def search_by_bow(
    feat_vec1: Mapping[int, Sequence[int]],
    feat_vec2: Mapping[int, Sequence[int]],
    descriptors1,
    descriptors2,
    keys1: Sequence[KeyPoint],
    keys2: Sequence[KeyPoint],
    nn_ratio: float = 0.6,
    check_orientation: bool = True,
) -> BowMatches:
    """Match features of two images, comparing only those filed under the same node.

    ``feat_vec1`` and ``feat_vec2`` map a vocabulary node id to the indices of the
    features under it. Nodes are visited in increasing id order. A feature of the
    second set is matched at most once. A match needs a distance of at most 50 and
    must beat the runner-up by ``nn_ratio``. With ``check_orientation``, matches
    outside the three dominant rotation bins are dropped.
    """
    if len(descriptors1) != len(keys1) or len(descriptors2) != len(keys2):
        raise ValueError("each keypoint needs exactly one descriptor")

    ratio = np.float32(nn_ratio)
    matches12: list[int | None] = [None] * len(keys1)
    matched2 = [False] * len(keys2)
    histogram = RotationHistogram()
    count = 0

    for node in sorted(set(feat_vec1) & set(feat_vec2)):
        indices2 = feat_vec2[node]
        for idx1 in feat_vec1[node]:
            candidates = (
                (idx2, descriptors2[idx2]) for idx2 in indices2 if not matched2[idx2]
            )
            best = best_two_matches(descriptors1[idx1], candidates)
            if best.index is None or best.distance > TH_LOW:
                continue
            if not np.float32(best.distance) < ratio * np.float32(best.second_distance):
                continue

            matches12[idx1] = best.index
            matched2[best.index] = True
            count += 1

            if check_orientation:
                rotation = np.float32(keys1[idx1].angle) - np.float32(keys2[best.index].angle)
                histogram.add(float(rotation), idx1)

    if check_orientation:
        for idx1 in histogram.inconsistent():
            if matches12[idx1] is not None:
                matches12[idx1] = None
                count -= 1

    return BowMatches(count, matches12)