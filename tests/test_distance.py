import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st

from orbfeatures.distance import best_two_matches, descriptor_distance

descriptors = st.binary(min_size=32, max_size=32).map(
    lambda raw: np.frombuffer(raw, dtype=np.uint8).copy()
)


def test_identical_descriptors_have_zero_distance():
    d = np.arange(32, dtype=np.uint8)
    assert descriptor_distance(d, d) == 0


def test_all_bits_differ():
    zeros = np.zeros(32, dtype=np.uint8)
    ones = np.full(32, 255, dtype=np.uint8)
    assert descriptor_distance(zeros, ones) == 256


def test_single_bit_difference():
    a = np.zeros(32, dtype=np.uint8)
    b = a.copy()
    b[17] = 0b0001_0000
    assert descriptor_distance(a, b) == 1


def test_int32_view_matches_byte_view():
    a = np.arange(32, dtype=np.uint8)
    b = np.arange(32, 64, dtype=np.uint8)
    assert descriptor_distance(a.view(np.int32), b.view(np.int32)) == descriptor_distance(a, b)


def test_length_mismatch_raises():
    with pytest.raises(ValueError):
        descriptor_distance(np.zeros(32, dtype=np.uint8), np.zeros(16, dtype=np.uint8))


@given(descriptors, descriptors)
def test_distance_is_symmetric_and_bounded(a, b):
    dist = descriptor_distance(a, b)
    assert dist == descriptor_distance(b, a)
    assert 0 <= dist <= 256


@given(descriptors, descriptors, descriptors)
def test_triangle_inequality(a, b, c):
    assert descriptor_distance(a, c) <= descriptor_distance(a, b) + descriptor_distance(b, c)


def test_best_two_matches_picks_closest_and_runner_up():
    query = np.zeros(32, dtype=np.uint8)
    far = np.full(32, 255, dtype=np.uint8)
    near = query.copy()
    near[0] = 1
    mid = query.copy()
    mid[:2] = 255
    result = best_two_matches(query, [(4, far), (9, near), (2, mid)])
    assert result.index == 9
    assert result.distance == descriptor_distance(query, near)
    assert result.second_distance == descriptor_distance(query, mid)


def test_best_two_matches_on_array_uses_row_indices():
    query = np.zeros(32, dtype=np.uint8)
    rows = np.stack([np.full(32, 255, dtype=np.uint8), query])
    result = best_two_matches(query, rows)
    assert result.index == 1
    assert result.distance == 0
    assert result.second_distance == 256


def test_first_of_equal_candidates_wins():
    query = np.zeros(32, dtype=np.uint8)
    same = query.copy()
    result = best_two_matches(query, [(3, same), (5, same.copy())])
    assert result.index == 3
    assert result.second_distance == 0


def test_no_candidates_leaves_no_index():
    query = np.zeros(32, dtype=np.uint8)
    result = best_two_matches(query, [])
    assert result.index is None
    assert result.distance == 256
    assert result.second_distance == 256


def test_maximally_distant_candidate_is_not_chosen():
    query = np.zeros(32, dtype=np.uint8)
    result = best_two_matches(query, [(0, np.full(32, 255, dtype=np.uint8))])
    assert result.index is None