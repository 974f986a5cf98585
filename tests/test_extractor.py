import math

import numpy as np
import pytest

from orbfeatures.extractor import ORBExtractor
from orbfeatures.pattern import PATCH_SIZE


def _textured(rows=200, cols=240, block=5, seed=0):
    rng = np.random.default_rng(seed)
    coarse = rng.integers(0, 256, size=(rows // block, cols // block), dtype=np.uint8)
    return np.repeat(np.repeat(coarse, block, axis=0), block, axis=1)


@pytest.fixture
def extractor():
    return ORBExtractor(200, 1.2, 3, 20, 7)


def test_scale_tables_are_consistent():
    orb = ORBExtractor(1000, 1.2, 8, 20, 7)
    assert orb.scale_factors[0] == 1.0
    assert orb.level_sigma2[0] == 1.0
    for prev, cur in zip(orb.scale_factors, orb.scale_factors[1:]):
        assert cur / prev == pytest.approx(1.2, rel=1e-5)
    for f, s2, inv, inv2 in zip(
        orb.scale_factors, orb.level_sigma2, orb.inv_scale_factors, orb.inv_level_sigma2
    ):
        assert s2 == pytest.approx(f * f, rel=1e-5)
        assert f * inv == pytest.approx(1.0, rel=1e-5)
        assert s2 * inv2 == pytest.approx(1.0, rel=1e-5)


def test_feature_budget_is_shared_over_levels():
    orb = ORBExtractor(1000, 1.2, 8, 20, 7)
    assert len(orb.features_per_level) == 8
    assert sum(orb.features_per_level) == 1000
    assert all(n >= 0 for n in orb.features_per_level)
    assert orb.features_per_level[0] > orb.features_per_level[1]


@pytest.mark.parametrize(
    "args",
    [(100, 1.0, 3, 20, 7), (100, 1.2, 0, 20, 7), (-1, 1.2, 3, 20, 7)],
)
def test_invalid_settings_are_rejected(args):
    with pytest.raises(ValueError):
        ORBExtractor(*args)


def test_pyramid_halves_with_scale_two():
    orb = ORBExtractor(100, 2.0, 3, 20, 7)
    image = _textured()
    pyramid = orb.compute_pyramid(image)
    assert len(pyramid) == 3
    assert np.array_equal(pyramid[0], image)
    assert pyramid[1].shape == (image.shape[0] // 2, image.shape[1] // 2)
    assert pyramid[2].shape == (image.shape[0] // 4, image.shape[1] // 4)
    assert all(level.dtype == np.uint8 for level in pyramid)


def test_keypoints_need_a_pyramid(extractor):
    with pytest.raises(RuntimeError):
        extractor.compute_keypoints_octree()


def test_octree_keypoints_lie_inside_borders(extractor):
    extractor.compute_pyramid(_textured())
    levels = extractor.compute_keypoints_octree()
    assert len(levels) == 3
    assert sum(len(level) for level in levels) > 0
    for level, (image, keys) in enumerate(zip(extractor.image_pyramid, levels)):
        rows, cols = image.shape
        assert all(kp.octave == level for kp in keys)
        assert all(16 <= kp.x <= cols - 16 and 16 <= kp.y <= rows - 16 for kp in keys)
        assert len({kp.pt for kp in keys}) == len(keys)
        assert all(0.0 <= kp.angle < 360.0 for kp in keys)


def test_grid_keypoints_respect_budget(extractor):
    extractor.compute_pyramid(_textured())
    levels = extractor.compute_keypoints_grid()
    assert len(levels) == 3
    assert sum(len(level) for level in levels) > 0
    for level, (image, keys) in enumerate(zip(extractor.image_pyramid, levels)):
        rows, cols = image.shape
        assert len(keys) <= extractor.features_per_level[level]
        assert all(kp.octave == level for kp in keys)
        assert all(16 <= kp.x < cols - 16 and 16 <= kp.y < rows - 16 for kp in keys)


def test_extract_returns_matching_descriptors(extractor):
    image = _textured()
    keypoints, descriptors = extractor.extract(image)
    assert len(keypoints) > 0
    assert descriptors.shape == (len(keypoints), 32)
    assert descriptors.dtype == np.uint8
    rows, cols = image.shape
    assert all(0 <= kp.x < cols and 0 <= kp.y < rows for kp in keypoints)
    assert all(0 <= kp.octave < 3 for kp in keypoints)
    assert all(0.0 <= kp.angle < 360.0 for kp in keypoints)


def test_patch_size_grows_with_octave(extractor):
    keypoints, _ = extractor.extract(_textured())
    level0 = [kp for kp in keypoints if kp.octave == 0]
    assert level0
    assert all(kp.size == PATCH_SIZE for kp in level0)
    by_octave = sorted(keypoints, key=lambda kp: kp.octave)
    sizes = [kp.size for kp in by_octave]
    assert sizes == sorted(sizes)


def test_extract_is_deterministic(extractor):
    image = _textured(seed=3)
    first_keys, first_desc = extractor.extract(image)
    second_keys, second_desc = extractor.extract(image)
    assert first_keys == second_keys
    assert np.array_equal(first_desc, second_desc)


def test_blank_image_has_no_features(extractor):
    keypoints, descriptors = extractor.extract(np.full((200, 240), 128, dtype=np.uint8))
    assert keypoints == []
    assert descriptors.shape == (0, 32)


def test_empty_image_has_no_features(extractor):
    keypoints, descriptors = extractor.extract(np.zeros((0, 0), dtype=np.uint8))
    assert keypoints == []
    assert descriptors.shape == (0, 32)


def test_colour_image_is_rejected(extractor):
    with pytest.raises(ValueError):
        extractor.extract(np.zeros((50, 50, 3), dtype=np.uint8))


def test_level_keypoints_are_scaled_to_base_image(extractor):
    image = _textured()
    keypoints, _ = extractor.extract(image)
    upper = [kp for kp in keypoints if kp.octave > 0]
    assert upper
    rows, cols = image.shape
    assert all(kp.x <= cols and kp.y <= rows for kp in upper)
    assert max(kp.x for kp in upper) > min(kp.x for kp in upper)
    assert not math.isnan(sum(kp.x for kp in upper))