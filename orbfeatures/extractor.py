"""Multi-scale ORB feature extraction: image pyramid, distributed FAST corners, orientation and descriptors."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace

import numpy as np

from orbfeatures.fast import detect_fast, retain_best
from orbfeatures.imaging import gaussian_blur, resize_linear
from orbfeatures.keypoint import KeyPoint
from orbfeatures.octree import distribute_oct_tree
from orbfeatures.pattern import (
    DESCRIPTOR_BYTES,
    EDGE_THRESHOLD,
    HALF_PATCH_SIZE,
    PATCH_SIZE,
    bit_pattern_31,
    compute_descriptors,
    compute_umax,
    ic_angle,
)

_CELL_SIZE = 30.0


@dataclass
class _GridCell:
    keys: list[KeyPoint] = field(default_factory=list)
    total: int = 0
    retain: int = 0
    no_more: bool = False


class ORBExtractor:
    """Extracts ORB keypoints and 32-byte descriptors from grayscale ``uint8`` images."""

    def __init__(
        self, nfeatures: int, scale_factor: float, nlevels: int, ini_th_fast: int, min_th_fast: int
    ) -> None:
        if nfeatures < 0:
            raise ValueError("nfeatures must not be negative")
        if nlevels < 1:
            raise ValueError("nlevels must be at least 1")
        if scale_factor <= 1.0:
            raise ValueError("scale_factor must be greater than 1")

        self.nfeatures = int(nfeatures)
        self.scale_factor = float(scale_factor)
        self.nlevels = int(nlevels)
        self.ini_th_fast = int(ini_th_fast)
        self.min_th_fast = int(min_th_fast)

        step = np.float32(scale_factor)
        factors = [np.float32(1.0)]
        for _ in range(1, self.nlevels):
            factors.append(np.float32(factors[-1] * step))
        sigma2 = [np.float32(f * f) for f in factors]

        self.scale_factors = tuple(float(f) for f in factors)
        self.level_sigma2 = tuple(float(s) for s in sigma2)
        self.inv_scale_factors = tuple(float(np.float32(1.0) / f) for f in factors)
        self.inv_level_sigma2 = tuple(float(np.float32(1.0) / s) for s in sigma2)
        self.features_per_level = self._share_features(step)

        self._pattern = bit_pattern_31()
        self._umax = compute_umax(HALF_PATCH_SIZE)
        self._pyramid: list[np.ndarray] | None = None

    def _share_features(self, step: np.float32) -> tuple[int, ...]:
        factor = np.float32(1.0) / step
        desired = np.float32(
            np.float32(self.nfeatures) * (np.float32(1.0) - factor)
            / (np.float32(1.0) - np.float32(math.pow(float(factor), self.nlevels)))
        )
        shares = []
        for _ in range(self.nlevels - 1):
            shares.append(round(float(desired)))
            desired = np.float32(desired * factor)
        shares.append(max(self.nfeatures - sum(shares), 0))
        return tuple(shares)

    @property
    def image_pyramid(self) -> list[np.ndarray]:
        """The images of the last computed pyramid, finest level first."""
        return list(self._require_pyramid())

    def _require_pyramid(self) -> list[np.ndarray]:
        if self._pyramid is None:
            raise RuntimeError("the image pyramid has not been computed")
        return self._pyramid

    @staticmethod
    def _check_image(image) -> np.ndarray:
        img = np.asarray(image)
        if img.ndim != 2 or img.dtype != np.uint8:
            raise ValueError("expected a single-channel uint8 image")
        return img

    def compute_pyramid(self, image) -> list[np.ndarray]:
        """Build and keep the scale pyramid of ``image``; return its levels."""
        img = self._check_image(image)
        rows, cols = img.shape
        pyramid: list[np.ndarray] = []
        for level, inv in enumerate(self.inv_scale_factors):
            if level == 0:
                pyramid.append(img.copy())
                continue
            scale = np.float32(inv)
            width = round(float(np.float32(cols) * scale))
            height = round(float(np.float32(rows) * scale))
            pyramid.append(resize_linear(pyramid[-1], width, height))
        self._pyramid = pyramid
        return list(pyramid)

    def _oriented(self, image: np.ndarray, keypoints: list[KeyPoint]) -> list[KeyPoint]:
        return [replace(kp, angle=ic_angle(image, kp.x, kp.y, self._umax)) for kp in keypoints]

    def _patch_size(self, level: int) -> int:
        return int(np.float32(PATCH_SIZE) * np.float32(self.scale_factors[level]))

    def _cell_corners(self, cell: np.ndarray) -> list[KeyPoint]:
        keys = detect_fast(cell, self.ini_th_fast, True)
        if not keys:
            keys = detect_fast(cell, self.min_th_fast, True)
        return keys

    def _octree_level(self, level: int, image: np.ndarray) -> list[KeyPoint]:
        rows, cols = image.shape
        min_border_x = EDGE_THRESHOLD - 3
        min_border_y = min_border_x
        max_border_x = cols - EDGE_THRESHOLD + 3
        max_border_y = rows - EDGE_THRESHOLD + 3

        width = float(max_border_x - min_border_x)
        height = float(max_border_y - min_border_y)
        n_cols = int(width / _CELL_SIZE)
        n_rows = int(height / _CELL_SIZE)
        if n_cols < 1 or n_rows < 1:
            return []
        w_cell = math.ceil(width / n_cols)
        h_cell = math.ceil(height / n_rows)

        to_distribute: list[KeyPoint] = []
        for i in range(n_rows):
            ini_y = min_border_y + i * h_cell
            if ini_y >= max_border_y - 3:
                continue
            max_y = min(ini_y + h_cell + 6, max_border_y)
            for j in range(n_cols):
                ini_x = min_border_x + j * w_cell
                if ini_x >= max_border_x - 6:
                    continue
                max_x = min(ini_x + w_cell + 6, max_border_x)
                cell = image[ini_y:max_y, ini_x:max_x]
                to_distribute.extend(
                    kp.shifted(j * w_cell, i * h_cell) for kp in self._cell_corners(cell)
                )

        kept = distribute_oct_tree(
            to_distribute,
            min_border_x,
            max_border_x,
            min_border_y,
            max_border_y,
            self.features_per_level[level],
        )
        size = self._patch_size(level)
        placed = [
            replace(kp.shifted(min_border_x, min_border_y), octave=level, size=float(size))
            for kp in kept
        ]
        return self._oriented(image, placed)

    def compute_keypoints_octree(self) -> list[list[KeyPoint]]:
        """Detect keypoints on every pyramid level, spread them with a quadtree and orient them."""
        return [
            self._octree_level(level, image)
            for level, image in enumerate(self._require_pyramid())
        ]

    def _grid_level(self, level: int, image: np.ndarray, image_ratio: np.float32) -> list[KeyPoint]:
        rows, cols = image.shape
        n_desired = self.features_per_level[level]
        level_cols = int(math.sqrt(float(np.float32(n_desired) / (np.float32(5.0) * image_ratio))))
        level_rows = int(float(image_ratio * np.float32(level_cols)))
        n_cells = level_rows * level_cols
        if n_cells == 0:
            return []

        min_border = EDGE_THRESHOLD
        max_border_x = cols - EDGE_THRESHOLD
        max_border_y = rows - EDGE_THRESHOLD
        width = max_border_x - min_border
        height = max_border_y - min_border
        if width <= 0 or height <= 0:
            return []
        cell_w = math.ceil(width / level_cols)
        cell_h = math.ceil(height / level_rows)
        n_features_cell = math.ceil(n_desired / n_cells)

        grid = [[_GridCell() for _ in range(level_cols)] for _ in range(level_rows)]
        ini_x_col = [0] * level_cols
        ini_y_row = [0] * level_rows
        n_no_more = 0
        n_to_distribute = 0

        h_y = cell_h + 6
        for i, row in enumerate(grid):
            ini_y = min_border + i * cell_h - 3
            ini_y_row[i] = ini_y
            if i == level_rows - 1:
                h_y = max_border_y + 3 - ini_y
                if h_y <= 0:
                    continue
            h_x = cell_w + 6
            for j, cell in enumerate(row):
                if i == 0:
                    ini_x = min_border + j * cell_w - 3
                    ini_x_col[j] = ini_x
                else:
                    ini_x = ini_x_col[j]
                if j == level_cols - 1:
                    h_x = max_border_x + 3 - ini_x
                    if h_x <= 0:
                        continue

                patch = image[ini_y : ini_y + h_y, ini_x : ini_x + h_x]
                keys = detect_fast(patch, self.ini_th_fast, True)
                if len(keys) <= 3:
                    keys = detect_fast(patch, self.min_th_fast, True)
                cell.keys = keys
                cell.total = len(keys)
                if cell.total > n_features_cell:
                    cell.retain = n_features_cell
                    cell.no_more = False
                else:
                    cell.retain = cell.total
                    n_to_distribute += n_features_cell - cell.total
                    cell.no_more = True
                    n_no_more += 1

        cells = [cell for row in grid for cell in row]
        while n_to_distribute > 0 and n_no_more < n_cells:
            n_new = n_features_cell + math.ceil(n_to_distribute / (n_cells - n_no_more))
            n_to_distribute = 0
            for cell in cells:
                if cell.no_more:
                    continue
                if cell.total > n_new:
                    cell.retain = n_new
                else:
                    cell.retain = cell.total
                    n_to_distribute += n_new - cell.total
                    cell.no_more = True
                    n_no_more += 1

        size = float(self._patch_size(level))
        keypoints: list[KeyPoint] = []
        for i, row in enumerate(grid):
            for j, cell in enumerate(row):
                best = retain_best(cell.keys, cell.retain)[: cell.retain]
                keypoints.extend(
                    replace(kp.shifted(ini_x_col[j], ini_y_row[i]), octave=level, size=size)
                    for kp in best
                )

        if len(keypoints) > n_desired:
            keypoints = retain_best(keypoints, n_desired)[:n_desired]
        return self._oriented(image, keypoints)

    def compute_keypoints_grid(self) -> list[list[KeyPoint]]:
        """Detect keypoints per level on a fixed grid, sharing the budget between cells, and orient them."""
        pyramid = self._require_pyramid()
        rows0, cols0 = pyramid[0].shape
        if rows0 == 0:
            raise ValueError("cannot extract features from an empty image")
        image_ratio = np.float32(cols0) / np.float32(rows0)
        return [
            self._grid_level(level, image, image_ratio) for level, image in enumerate(pyramid)
        ]

    def extract(self, image) -> tuple[list[KeyPoint], np.ndarray]:
        """Return the keypoints of ``image`` in level-0 coordinates and their ``(n, 32)`` descriptors."""
        img = np.asarray(image)
        if img.size == 0:
            return [], np.zeros((0, DESCRIPTOR_BYTES), dtype=np.uint8)
        img = self._check_image(img)

        self.compute_pyramid(img)
        all_keypoints = self.compute_keypoints_octree()

        keypoints: list[KeyPoint] = []
        blocks: list[np.ndarray] = []
        for level, (level_image, level_keys) in enumerate(zip(self._require_pyramid(), all_keypoints)):
            if not level_keys:
                continue
            working = gaussian_blur(level_image, (7, 7), 2.0)
            blocks.append(compute_descriptors(working, level_keys, self._pattern))
            if level != 0:
                scale = float(np.float32(self.scale_factors[level]))
                level_keys = [kp.scaled(scale) for kp in level_keys]
            keypoints.extend(level_keys)

        if not blocks:
            return [], np.zeros((0, DESCRIPTOR_BYTES), dtype=np.uint8)
        return keypoints, np.vstack(blocks)