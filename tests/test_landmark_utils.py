import warnings

import numpy as np
import pytest

from errors import InvalidLandmarkCount
from landmark_utils import array_to_landmarks, landmarks_to_array, normalize_landmarks

from conftest import make_hand


def test_normalize_moves_wrist_to_origin(open_hand):
    out = normalize_landmarks(open_hand)
    assert out.shape == (21, 3)
    assert np.allclose(out[0], 0.0)
    assert np.isclose(np.linalg.norm(out, axis=1).max(), 1.0)


@pytest.mark.parametrize("k, t", [
    (2.5, (0.1, -0.3, 0.2)),
    (0.1, (5.0, 5.0, -1.0)),
    (17.0, (0.0, 0.0, 0.0)),
])
def test_normalize_is_scale_and_translation_invariant(open_hand, k, t):
    moved = open_hand * k + np.asarray(t)
    assert np.allclose(normalize_landmarks(moved), normalize_landmarks(open_hand))


def test_degenerate_hand_normalizes_to_zeros():
    same = np.tile([0.4, 0.6, -0.1], (21, 1))
    out = normalize_landmarks(same)
    assert out.shape == (21, 3)
    assert np.all(out == 0.0)


def test_accepts_dict_and_flat_forms(open_hand):
    from_dicts = normalize_landmarks(array_to_landmarks(open_hand))
    from_flat = normalize_landmarks(open_hand.flatten())
    assert np.allclose(from_dicts, from_flat)


@pytest.mark.parametrize("count", [0, 20, 22, 42])
def test_wrong_landmark_count_is_rejected(count):
    with pytest.raises(InvalidLandmarkCount):
        landmarks_to_array([{"x": 0.1, "y": 0.2, "z": 0.0}] * count)


def test_missing_coordinate_is_rejected():
    hand = array_to_landmarks(make_hand())
    del hand[3]["z"]
    with pytest.raises(InvalidLandmarkCount):
        landmarks_to_array(hand)


def test_none_is_rejected():
    with pytest.raises(InvalidLandmarkCount):
        landmarks_to_array(None)


def test_non_finite_values_pass_through(open_hand):
    open_hand[5, 1] = np.nan
    out = normalize_landmarks(open_hand)
    assert np.isnan(out[5, 1])
    assert np.isfinite(out[6]).all()


@pytest.mark.parametrize("row", [0, 8])
def test_infinite_values_do_not_warn(open_hand, row):
    open_hand[row, 0] = np.inf
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        out = normalize_landmarks(open_hand)
    assert not np.isfinite(out).all()
