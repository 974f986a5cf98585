import numpy as np
import pytest

from orbfeatures.distance import descriptor_distance
from orbfeatures.keypoint import KeyPoint
from orbfeatures.search import TH_LOW, search_for_initialization


def _descriptors(n, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(n, 32), dtype=np.uint8)


def _flip(descriptor, nbits):
    bits = np.unpackbits(descriptor.copy())
    bits[:nbits] ^= 1
    return np.packbits(bits)


def _grid_keys(n, angle=0.0, dx=0.0):
    return [KeyPoint(x=20.0 * i + dx, y=50.0, angle=angle) for i in range(n)]


def test_identical_frames_match_one_to_one():
    keys = _grid_keys(6)
    desc = _descriptors(6)
    prev = [kp.pt for kp in keys]
    result = search_for_initialization(keys, keys, desc, desc, prev, 5, 0.9, True)
    assert result.count == 6
    assert result.matches12 == list(range(6))
    assert result.prev_matched == prev


def test_prev_matched_moves_to_matched_keypoint():
    keys1 = _grid_keys(4)
    keys2 = _grid_keys(4, dx=1.5)
    desc = _descriptors(4)
    prev = [kp.pt for kp in keys1]
    result = search_for_initialization(keys1, keys2, desc, desc, prev, 5, 0.9, False)
    assert result.matches12 == [0, 1, 2, 3]
    assert result.prev_matched == [kp.pt for kp in keys2]


def test_coarse_level_keypoints_are_skipped():
    keys1 = [KeyPoint(x=10.0, y=10.0, octave=1)]
    keys2 = [KeyPoint(x=10.0, y=10.0, octave=1)]
    desc = _descriptors(1)
    result = search_for_initialization(keys1, keys2, desc, desc, [(10.0, 10.0)], 5, 0.9, False)
    assert result.count == 0
    assert result.matches12 == [None]
    assert result.prev_matched == [(10.0, 10.0)]


def test_ambiguous_candidates_are_rejected():
    keys1 = [KeyPoint(x=10.0, y=10.0)]
    keys2 = [KeyPoint(x=10.0, y=10.0), KeyPoint(x=11.0, y=10.0)]
    desc1 = _descriptors(1)
    desc2 = np.vstack([desc1, desc1])
    result = search_for_initialization(keys1, keys2, desc1, desc2, [(10.0, 10.0)], 5, 0.9, False)
    assert result.count == 0
    assert result.matches12 == [None]


def test_distance_above_threshold_is_rejected():
    keys = [KeyPoint(x=10.0, y=10.0)]
    desc1 = _descriptors(1)
    desc2 = _flip(desc1[0], TH_LOW + 1)[None, :]
    assert descriptor_distance(desc1[0], desc2[0]) == TH_LOW + 1
    result = search_for_initialization(keys, keys, desc1, desc2, [(10.0, 10.0)], 5, 0.9, False)
    assert result.count == 0


def test_closer_keypoint_takes_over_a_match():
    keys1 = [KeyPoint(x=10.0, y=10.0), KeyPoint(x=12.0, y=10.0)]
    keys2 = [KeyPoint(x=11.0, y=10.0)]
    target = _descriptors(1)[0]
    desc1 = np.vstack([_flip(target, 10), target])
    desc2 = target[None, :]
    prev = [kp.pt for kp in keys1]
    result = search_for_initialization(keys1, keys2, desc1, desc2, prev, 5, 0.9, False)
    assert result.count == 1
    assert result.matches12 == [None, 0]
    assert result.prev_matched[0] == keys1[0].pt


def test_outside_window_is_not_matched():
    keys1 = [KeyPoint(x=10.0, y=10.0)]
    keys2 = [KeyPoint(x=30.0, y=10.0)]
    desc = _descriptors(1)
    result = search_for_initialization(keys1, keys2, desc, desc, [(10.0, 10.0)], 5, 0.9, False)
    assert result.matches12 == [None]


def test_rotation_outlier_is_removed():
    n = 12
    keys1 = _grid_keys(n)
    keys2 = _grid_keys(n)
    keys2[-1] = KeyPoint(x=keys2[-1].x, y=keys2[-1].y, angle=180.0)
    desc = _descriptors(n, seed=3)
    prev = [kp.pt for kp in keys1]

    checked = search_for_initialization(keys1, keys2, desc, desc, prev, 5, 0.9, True)
    assert checked.count == n - 1
    assert checked.matches12[-1] is None
    assert checked.prev_matched[-1] == prev[-1]

    unchecked = search_for_initialization(keys1, keys2, desc, desc, prev, 5, 0.9, False)
    assert unchecked.count == n
    assert unchecked.matches12[-1] == n - 1


def test_count_equals_number_of_matches():
    keys1 = _grid_keys(8)
    keys2 = _grid_keys(8, dx=0.5)
    desc1 = _descriptors(8, seed=5)
    desc2 = np.vstack([_flip(d, 3 * i) for i, d in enumerate(desc1)])
    prev = [kp.pt for kp in keys1]
    result = search_for_initialization(keys1, keys2, desc1, desc2, prev, 5, 0.9, True)
    matched = [m for m in result.matches12 if m is not None]
    assert result.count == len(matched)
    assert len(set(matched)) == len(matched)


def test_mismatched_lengths_raise():
    keys = _grid_keys(2)
    desc = _descriptors(2)
    with pytest.raises(ValueError):
        search_for_initialization(keys, keys, desc, desc, [(0.0, 0.0)], 5, 0.9, True)
    with pytest.raises(ValueError):
        search_for_initialization(keys, keys, desc[:1], desc, [kp.pt for kp in keys], 5, 0.9, True)