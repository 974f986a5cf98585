"""Descriptor matching between two frames for map initialisation."""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from orbfeatures.distance import descriptor_distance
from orbfeatures.geometry import features_in_area
from orbfeatures.histogram import RotationHistogram
from orbfeatures.keypoint import KeyPoint

TH_HIGH = 100
TH_LOW = 50
_INT_MAX = 2**31 - 1


class InitializationMatches(NamedTuple):
    """Result of :func:`search_for_initialization`.

    ``matches12[i]`` is the index in the second frame matched to keypoint ``i`` of the
    first, or ``None``. ``prev_matched`` is the updated list of predicted positions.
    """

    count: int
    matches12: list[int | None]
    prev_matched: list[tuple[float, float]]


def search_for_initialization(
    keys1: Sequence[KeyPoint],
    keys2: Sequence[KeyPoint],
    descriptors1,
    descriptors2,
    prev_matched: Sequence[tuple[float, float]],
    window_size: float,
    nn_ratio: float = 0.6,
    check_orientation: bool = True,
) -> InitializationMatches:
    """Match finest-level keypoints of frame 1 to frame 2 around their predicted positions.

    Each keypoint of frame 1 at level 0 is compared with keypoints of frame 2 at the
    same level inside a window around ``prev_matched[i]``. A match needs a distance of at
    most 50 and must beat the runner-up by ``nn_ratio``. A keypoint of frame 2 goes to
    whichever frame-1 keypoint reaches it with the smallest distance. With
    ``check_orientation``, matches outside the three dominant rotation bins are dropped.
    """
    if len(prev_matched) != len(keys1):
        raise ValueError("prev_matched must hold one position per keypoint of frame 1")
    if len(descriptors1) != len(keys1) or len(descriptors2) != len(keys2):
        raise ValueError("each keypoint needs exactly one descriptor")

    ratio = np.float32(nn_ratio)
    matches12: list[int | None] = [None] * len(keys1)
    matches21: list[int | None] = [None] * len(keys2)
    matched_distance = [_INT_MAX] * len(keys2)
    histogram = RotationHistogram()
    count = 0

    for i1, kp1 in enumerate(keys1):
        level = kp1.octave
        if level > 0:
            continue
        px, py = prev_matched[i1]
        candidates = features_in_area(keys2, px, py, window_size, level, level)
        if not candidates:
            continue

        d1 = descriptors1[i1]
        best = second = _INT_MAX
        best_idx: int | None = None
        for i2 in candidates:
            dist = descriptor_distance(d1, descriptors2[i2])
            if matched_distance[i2] <= dist:
                continue
            if dist < best:
                second, best, best_idx = best, dist, i2
            elif dist < second:
                second = dist

        if best_idx is None or best > TH_LOW:
            continue
        if not best < np.float32(second) * ratio:
            continue

        previous = matches21[best_idx]
        if previous is not None:
            matches12[previous] = None
            count -= 1
        matches12[i1] = best_idx
        matches21[best_idx] = i1
        matched_distance[best_idx] = best
        count += 1

        if check_orientation:
            rotation = np.float32(kp1.angle) - np.float32(keys2[best_idx].angle)
            histogram.add(float(rotation), i1)

    if check_orientation:
        for i1 in histogram.inconsistent():
            if matches12[i1] is not None:
                matches12[i1] = None
                count -= 1

    updated = [
        keys2[m].pt if m is not None else tuple(prev_matched[i])
        for i, m in enumerate(matches12)
    ]
    return InitializationMatches(count, matches12, updated)