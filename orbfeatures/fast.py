"""FAST-9/16 corner detection and response-based keypoint filtering."""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from orbfeatures.keypoint import KeyPoint

# Bresenham circle of radius 3 as (dx, dy), walked in order around the centre.
_CIRCLE = (
    (0, 3), (1, 3), (2, 2), (3, 1), (3, 0), (3, -1), (2, -2), (1, -3),
    (0, -3), (-1, -3), (-2, -2), (-3, -1), (-3, 0), (-3, 1), (-2, 2), (-1, 3),
)
_ARC = 9
_RADIUS = 3
_KEYPOINT_SIZE = 7.0


def _arc_strength(img: np.ndarray) -> np.ndarray:
    """For each interior pixel, the best minimum difference over any 9-pixel arc."""
    rows, cols = img.shape
    r = _RADIUS
    data = img.astype(np.int32)
    centre = data[r : rows - r, r : cols - r]
    ring = np.stack(
        [data[r + dy : rows - r + dy, r + dx : cols - r + dx] for dx, dy in _CIRCLE]
    ) - centre
    extended = np.concatenate([ring, ring[: _ARC - 1]])
    best = np.full(centre.shape, np.iinfo(np.int32).min, dtype=np.int32)
    for start in range(len(_CIRCLE)):
        arc = extended[start : start + _ARC]
        strength = np.maximum(arc.min(axis=0), -arc.max(axis=0))
        np.maximum(best, strength, out=best)
    return best


def detect_fast(image, threshold: int, nonmax_suppression: bool = True) -> list[KeyPoint]:
    """Detect FAST-9/16 corners in a grayscale image, in row-major order.

    A pixel is a corner when 9 contiguous circle pixels are all brighter than it by
    more than ``threshold`` or all darker by more than ``threshold``. The response is
    the largest threshold for which the pixel would still be a corner. With
    non-maximum suppression a corner is kept only if its response is strictly larger
    than that of its 8 neighbours.
    """
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel 2-D image")
    threshold = min(max(int(threshold), 0), 255)
    rows, cols = img.shape
    r = _RADIUS
    if rows < 2 * r + 1 or cols < 2 * r + 1:
        return []

    best = _arc_strength(img)
    corners = np.zeros((rows, cols), dtype=bool)
    scores = np.zeros((rows, cols), dtype=np.int32)
    interior = best > threshold
    corners[r : rows - r, r : cols - r] = interior
    scores[r : rows - r, r : cols - r] = np.where(interior, best - 1, 0)

    keep = corners
    if nonmax_suppression:
        padded = np.pad(scores, 1)
        keep = corners.copy()
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                keep &= scores > padded[1 + dy : 1 + dy + rows, 1 + dx : 1 + dx + cols]

    ys, xs = np.nonzero(keep)
    return [
        KeyPoint(x=float(x), y=float(y), size=_KEYPOINT_SIZE, response=float(scores[y, x]))
        for y, x in zip(ys, xs)
    ]


def retain_best(keypoints: Iterable[KeyPoint], count: int) -> list[KeyPoint]:
    """Keep the ``count`` keypoints with the strongest response, plus any tied with the last kept.

    The result is ordered by decreasing response. A negative ``count`` keeps everything.
    """
    points = list(keypoints)
    if count < 0 or len(points) <= count:
        return points
    if count == 0:
        return []
    ranked = sorted(points, key=lambda kp: kp.response, reverse=True)
    cutoff = ranked[count - 1].response
    return [kp for kp in ranked if kp.response >= cutoff]