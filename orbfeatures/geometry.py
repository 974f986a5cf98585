"""Geometric helpers for matching: search radius, epipolar check and area queries."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from orbfeatures.keypoint import KeyPoint

_EPIPOLAR_CHI2 = np.float32(3.84)


def radius_by_viewing_cos(view_cos: float) -> float:
    """Search window factor: narrow when the point is seen almost head-on, wider otherwise."""
    return 2.5 if view_cos > 0.998 else 4.0


def check_dist_epipolar_line(
    kp1: KeyPoint, kp2: KeyPoint, f12, level_sigma2: Sequence[float]
) -> bool:
    """Whether ``kp2`` lies close enough to the epipolar line of ``kp1`` under ``f12``.

    The squared distance to the line is compared with 3.84 times the variance of
    ``kp2``'s pyramid level. A degenerate line is never accepted.
    """
    f = np.asarray(f12, dtype=np.float32)
    if f.shape != (3, 3):
        raise ValueError("the fundamental matrix must be 3x3")
    x1, y1 = np.float32(kp1.x), np.float32(kp1.y)
    a = x1 * f[0, 0] + y1 * f[1, 0] + f[2, 0]
    b = x1 * f[0, 1] + y1 * f[1, 1] + f[2, 1]
    c = x1 * f[0, 2] + y1 * f[1, 2] + f[2, 2]

    num = a * np.float32(kp2.x) + b * np.float32(kp2.y) + c
    den = a * a + b * b
    if den == 0:
        return False
    dsqr = num * num / den
    return bool(dsqr < _EPIPOLAR_CHI2 * np.float32(level_sigma2[kp2.octave]))


def features_in_area(
    keypoints: Sequence[KeyPoint],
    x: float,
    y: float,
    radius: float,
    min_level: int | None = None,
    max_level: int | None = None,
) -> list[int]:
    """Indices of keypoints inside the square window of half-size ``radius`` around ``(x, y)``.

    The window is open: points exactly ``radius`` away on either axis are left out.
    Keypoints below ``min_level`` or above ``max_level`` are skipped; ``None`` or a
    negative bound leaves that side unbounded.
    """
    low = min_level if min_level is not None and min_level >= 0 else None
    high = max_level if max_level is not None and max_level >= 0 else None
    found = []
    for index, kp in enumerate(keypoints):
        if low is not None and kp.octave < low:
            continue
        if high is not None and kp.octave > high:
            continue
        if abs(kp.x - x) < radius and abs(kp.y - y) < radius:
            found.append(index)
    return found