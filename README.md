# orbfeatures

ORB keypoint detection, description and matching on grayscale images held in
NumPy arrays.

## What is in the package

- `orbfeatures.extractor.ORBExtractor`: builds a scale pyramid, detects FAST
  corners per cell and level, spreads them over the image with a quadtree,
  assigns intensity-centroid orientations and computes 32-byte rotated BRIEF
  descriptors.
- `orbfeatures.keypoint.KeyPoint`: a frozen record with `x`, `y`, `size`,
  `angle` (degrees, `-1` when not computed), `response` and `octave`, plus
  `pt`, `scaled(factor)` and `shifted(dx, dy)`.
- `orbfeatures.fast`: `detect_fast(image, threshold, nonmax_suppression)` for
  FAST-9/16 corners and `retain_best(keypoints, count)` to keep the strongest
  responses (ties with the last kept one are kept too).
- `orbfeatures.octree`: `ExtractorNode` and `distribute_oct_tree(...)`, which
  keeps the strongest keypoint of each quadtree leaf.
- `orbfeatures.pattern`: the 512-point sampling pattern (`bit_pattern_31`),
  `compute_umax`, `ic_angle`, `compute_orb_descriptor` and
  `compute_descriptors`.
- `orbfeatures.imaging`: `fast_atan2`, `gaussian_blur`, `resize_linear` and
  `pad_reflect101`.
- `orbfeatures.distance`: `descriptor_distance(a, b)` (Hamming distance in
  bits) and `best_two_matches(query, candidates)`, which returns a
  `BestMatches(distance, index, second_distance)` tuple.
- `orbfeatures.histogram`: `RotationHistogram` and `compute_three_maxima`,
  used to drop matches whose orientation change falls outside the three
  dominant bins.
- `orbfeatures.geometry`: `radius_by_viewing_cos`, `check_dist_epipolar_line`
  and `features_in_area`.
- `orbfeatures.search.search_for_initialization`: matches finest-level
  keypoints of two frames inside a window around predicted positions.
- `orbfeatures.bow.search_by_bow`: matches features that share a vocabulary
  node id.

## Installation

```
pip install .
```

## Extracting features

```python
import numpy as np
from orbfeatures.extractor import ORBExtractor

image = np.random.default_rng(0).integers(0, 256, (480, 640), dtype=np.uint8)

extractor = ORBExtractor(1000, 1.2, 8, 20, 7)
keypoints, descriptors = extractor.extract(image)

print(len(keypoints), descriptors.shape)   # N keypoints, (N, 32) uint8
```

The image must be a 2-D `uint8` array; an empty array gives no keypoints and a
`(0, 32)` descriptor array. Keypoints are returned in level-0 coordinates with
their octave, patch size, angle and FAST response. The per-level budget is in
`extractor.features_per_level`, the scales in `extractor.scale_factors`, and
the last pyramid in `extractor.image_pyramid`.

`compute_pyramid(image)` followed by `compute_keypoints_octree()` or
`compute_keypoints_grid()` gives the oriented keypoints of each level without
descriptors; the grid variant shares the budget between fixed cells instead of
using the quadtree.

## Matching descriptors

```python
from orbfeatures.distance import descriptor_distance, best_two_matches

d = descriptor_distance(descriptors[0], descriptors[1])   # 0..256
best = best_two_matches(descriptors[0], descriptors[1:])  # rows indexed from 0
```

Matching two frames for initialisation:

```python
from orbfeatures.search import search_for_initialization

prev = [kp.pt for kp in keys1]
result = search_for_initialization(keys1, keys2, desc1, desc2, prev, 100)
print(result.count, result.matches12)
```

`search_by_bow(feat_vec1, feat_vec2, descriptors1, descriptors2, keys1, keys2)`
takes two mappings from a node id to the indices of the features filed under
it and returns `BowMatches(count, matches12)`.

## What the package does not do

The package works on images, keypoints and descriptors only. It does not load
image files, has no command-line tool, and holds no camera poses, map points,
keyframes or vocabulary: there is no matching by projection of 3-D points and
no pose or map optimisation. For `search_by_bow` the caller supplies the
node-to-feature mappings.

## Running the tests

```
pip install ".[test]"
pytest
```