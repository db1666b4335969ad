import numpy as np
import pytest

from features import preprocess_samples
from gesture_trainer import TrainerConfig, train_classifier
from landmark_utils import array_to_landmarks

# Distance from the wrist of the 4 joints of each finger
OPEN_REACH = np.array([0.25, 0.45, 0.6, 0.75])
FIST_REACH = np.array([0.25, 0.32, 0.27, 0.2])
FINGER_ANGLES = np.radians([-60, -25, 0, 20, 40])


def make_hand(curl=0.0, origin=(0.5, 0.8, 0.0), scale=0.3, noise=0.0, rng=None):
    """Synthetic 21-landmark hand: curl=0 open palm, curl=1 fist."""
    reach = (1 - curl) * OPEN_REACH + curl * FIST_REACH
    pts = [np.zeros(3)]
    for angle in FINGER_ANGLES:
        direction = np.array([np.sin(angle), -np.cos(angle), 0.0])
        for j, r in enumerate(reach):
            depth = np.array([0.0, 0.0, -0.05 * curl * j])
            pts.append(direction * r + depth)
    pts = np.array(pts)
    if noise:
        rng = rng or np.random.default_rng(0)
        pts = pts + rng.normal(0.0, noise, size=pts.shape)
    return np.asarray(origin) + scale * pts


def make_samples(per_sign=6, seed=0):
    rng = np.random.default_rng(seed)
    samples = []
    for sign, curl in (("OPEN", 0.0), ("FIST", 1.0)):
        for _ in range(per_sign):
            hand = make_hand(curl=curl, noise=0.01, rng=rng)
            samples.append({"landmarks": array_to_landmarks(hand), "sign": sign, "timestamp": 0})
    return samples


FAST_CONFIG = TrainerConfig(hidden_layers=(16, 8), iterations=60, log_period=10)


@pytest.fixture
def open_hand():
    return make_hand(curl=0.0)


@pytest.fixture
def samples():
    return make_samples()


@pytest.fixture(scope="session")
def training_data():
    return preprocess_samples(make_samples())


@pytest.fixture(scope="session")
def trained_artifact(training_data):
    X, y = training_data
    return train_classifier(X, y, FAST_CONFIG)
