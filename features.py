"""
Feature extraction: normalized landmarks -> fixed 102-value vector.

Layout, in order:
  63  raw x, y, z of the 21 landmarks
   5  fingertip -> finger base distances
  15  pairwise distances between the 6 palm anchors
  19  joint angles at landmarks 1..19 (radians)
"""
import logging
from collections import Counter
from itertools import combinations

import numpy as np

from config import FEATURE_LENGTH
from errors import InvalidLandmarkCount, NonFiniteFeature
from landmark_utils import landmarks_to_array, normalize_landmarks

logger = logging.getLogger(__name__)

FINGER_TIPS = (4, 8, 12, 16, 20)
FINGER_BASES = (2, 5, 9, 13, 17)
PALM_POINTS = (0, 1, 5, 9, 13, 17)
PALM_PAIRS = tuple(combinations(PALM_POINTS, 2))


def joint_angle(p1, p2, p3):
    """Angle at p2 between the rays p2->p1 and p2->p3. Zero when a ray has no length."""
    v1 = p1 - p2
    v2 = p3 - p2
    mag1 = np.linalg.norm(v1)
    mag2 = np.linalg.norm(v2)
    if mag1 == 0 or mag2 == 0:
        return 0.0
    cos_angle = np.dot(v1, v2) / (mag1 * mag2)
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def extract_features(normalized):
    """
    Build the 102-value feature vector for one normalized hand.
    Raises NonFiniteFeature if any value is NaN/inf; the vector is never repaired.
    """
    pts = landmarks_to_array(normalized)
    with np.errstate(invalid="ignore", over="ignore"):
        tip_dists = [np.linalg.norm(pts[t] - pts[b]) for t, b in zip(FINGER_TIPS, FINGER_BASES)]
        palm_dists = [np.linalg.norm(pts[i] - pts[j]) for i, j in PALM_PAIRS]
        angles = [joint_angle(pts[i - 1], pts[i], pts[i + 1]) for i in range(1, len(pts) - 1)]
        features = np.concatenate([
            pts.reshape(-1),
            np.asarray(tip_dists, dtype=np.float64),
            np.asarray(palm_dists, dtype=np.float64),
            np.asarray(angles, dtype=np.float64),
        ])

    if features.size != FEATURE_LENGTH:
        raise NonFiniteFeature(f"Expected {FEATURE_LENGTH} features, got {features.size}")
    if not np.all(np.isfinite(features)):
        bad = int(np.count_nonzero(~np.isfinite(features)))
        raise NonFiniteFeature(f"{bad} of {FEATURE_LENGTH} features are not finite")
    return features


def landmarks_to_features(landmarks):
    """Normalize raw landmarks and extract features in one step."""
    return extract_features(normalize_landmarks(landmarks))


def features_or_none(landmarks):
    """Like `landmarks_to_features` but returns None for an unusable hand."""
    try:
        return landmarks_to_features(landmarks)
    except (InvalidLandmarkCount, NonFiniteFeature):
        return None


def sample_sign(sample):
    return sample.get("sign") if sample.get("sign") is not None else sample.get("label")


def count_signs(samples):
    """Number of samples recorded per sign."""
    return dict(Counter(sample_sign(s) for s in samples if sample_sign(s) is not None))


def preprocess_samples(samples):
    """
    Turn stored samples into (X, y). Samples with a wrong landmark count or a
    non-finite feature are dropped, not imputed. Returns X (n, 102) and y (list).
    """
    X_list, y_list = [], []
    dropped = 0
    for sample in samples:
        sign = sample_sign(sample)
        features = features_or_none(sample.get("landmarks"))
        if sign is None or features is None:
            dropped += 1
            continue
        X_list.append(features)
        y_list.append(str(sign))
    if dropped:
        logger.warning("Dropped %d of %d samples with invalid landmarks", dropped, len(samples))
    X = np.array(X_list, dtype=np.float64).reshape(-1, FEATURE_LENGTH)
    return X, y_list
