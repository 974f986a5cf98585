"""Rotation-consistency histogram used to discard matches whose orientation change disagrees."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

HISTO_LENGTH = 30


def _size(entry) -> int:
    return len(entry) if hasattr(entry, "__len__") else int(entry)


def compute_three_maxima(histogram: Sequence) -> tuple[int | None, int | None, int | None]:
    """Indices of the three most populated bins, largest first.

    Each entry is a bin's contents or its count. Empty bins are never chosen. The second
    and third are dropped (``None``) when they hold fewer than a tenth of the first.
    """
    max1 = max2 = max3 = 0
    ind1 = ind2 = ind3 = None
    for i, entry in enumerate(histogram):
        s = _size(entry)
        if s > max1:
            max3, max2, max1 = max2, max1, s
            ind3, ind2, ind1 = ind2, ind1, i
        elif s > max2:
            max3, max2 = max2, s
            ind3, ind2 = ind2, i
        elif s > max3:
            max3 = s
            ind3 = i

    threshold = float(np.float32(0.1) * np.float32(max1))
    if max2 < threshold:
        ind2 = ind3 = None
    elif max3 < threshold:
        ind3 = None
    return ind1, ind2, ind3


class RotationHistogram:
    """Bins of match indices keyed by the change of keypoint orientation, in degrees."""

    def __init__(self, length: int = HISTO_LENGTH) -> None:
        if length < 1:
            raise ValueError("length must be at least 1")
        self.length = int(length)
        self._factor = np.float32(1.0) / np.float32(self.length)
        self.bins: list[list[int]] = [[] for _ in range(self.length)]

    def bin_of(self, rotation: float) -> int:
        """The bin that a rotation falls into; negative rotations are wrapped by 360 degrees."""
        rot = np.float32(rotation)
        if rot < 0.0:
            rot = np.float32(rot + np.float32(360.0))
        index = math.floor(float(rot * self._factor) + 0.5)
        if index == self.length:
            index = 0
        if not 0 <= index < self.length:
            raise ValueError(f"rotation {rotation} falls outside the histogram")
        return index

    def add(self, rotation: float, index: int) -> int:
        """Record match ``index`` under ``rotation``; return the bin it went to."""
        bin_index = self.bin_of(rotation)
        self.bins[bin_index].append(index)
        return bin_index

    def inconsistent(self) -> list[int]:
        """Indices recorded in bins other than the three dominant ones, in bin order."""
        keep = set(compute_three_maxima(self.bins))
        return [
            index
            for bin_index, entries in enumerate(self.bins)
            if bin_index not in keep
            for index in entries
        ]