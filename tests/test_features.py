import numpy as np
import pytest

from errors import InvalidLandmarkCount, NonFiniteFeature
from features import (
    PALM_PAIRS,
    count_signs,
    extract_features,
    features_or_none,
    joint_angle,
    landmarks_to_features,
    preprocess_samples,
)
from landmark_utils import array_to_landmarks, normalize_landmarks

from conftest import make_hand


def test_feature_vector_has_fixed_length(open_hand):
    assert landmarks_to_features(open_hand).shape == (102,)
    assert landmarks_to_features(make_hand(curl=1.0)).shape == (102,)


def test_degenerate_hand_still_gives_102_zeros():
    same = np.tile([0.4, 0.6, -0.1], (21, 1))
    features = landmarks_to_features(same)
    assert features.shape == (102,)
    assert np.all(features == 0.0)


def test_layout(open_hand):
    pts = normalize_landmarks(open_hand)
    features = extract_features(pts)
    assert np.allclose(features[:63], pts.reshape(-1))
    # thumb tip -> thumb base (4 -> 2)
    assert np.isclose(features[63], np.linalg.norm(pts[4] - pts[2]))
    # first palm pair is wrist -> thumb cmc
    assert PALM_PAIRS[0] == (0, 1)
    assert len(PALM_PAIRS) == 15
    assert np.isclose(features[68], np.linalg.norm(pts[1] - pts[0]))
    # straight index finger: angle at landmark 6 is pi
    assert np.isclose(features[83 + 5], np.pi)


def test_fist_bends_fingers():
    angles = extract_features(normalize_landmarks(make_hand(curl=1.0)))[83:]
    assert len(angles) == 19
    assert angles[5] < np.pi - 0.1


def test_zero_length_ray_gives_zero_angle():
    p = np.array([0.1, 0.2, 0.3])
    assert joint_angle(p, p, np.array([1.0, 0.0, 0.0])) == 0.0


@pytest.mark.parametrize("index", [0, 4, 9, 20])
@pytest.mark.parametrize("bad", [np.nan, np.inf])
def test_non_finite_coordinate_voids_vector(open_hand, index, bad):
    open_hand[index, 2] = bad
    with pytest.raises(NonFiniteFeature):
        landmarks_to_features(open_hand)
    assert features_or_none(open_hand) is None


def test_wrong_count_gives_none():
    assert features_or_none(make_hand()[:20]) is None
    with pytest.raises(InvalidLandmarkCount):
        landmarks_to_features(make_hand()[:20])


def test_preprocess_drops_invalid_samples():
    good = array_to_landmarks(make_hand())
    nan_hand = make_hand(curl=1.0)
    nan_hand[3, 0] = np.nan
    samples = [
        {"landmarks": good, "sign": "A"},
        {"landmarks": good[:20], "sign": "B"},
        {"landmarks": array_to_landmarks(nan_hand), "sign": "C"},
        {"landmarks": good, "label": "D"},
        {"landmarks": good},
    ]
    X, y = preprocess_samples(samples)
    assert X.shape == (2, 102)
    assert y == ["A", "D"]


def test_preprocess_of_nothing_is_empty():
    X, y = preprocess_samples([])
    assert X.shape == (0, 102)
    assert y == []


def test_count_signs(samples):
    assert count_signs(samples) == {"OPEN": 6, "FIST": 6}
