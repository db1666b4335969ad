"""
Shared landmark normalization for sign recognition.
Use the same normalization when training and at inference so the model
sees consistent input (hand shape) regardless of position/size in frame.
"""
import numpy as np

from config import COORDS, NUM_LANDMARKS
from errors import InvalidLandmarkCount

EXPECTED_SIZE = NUM_LANDMARKS * COORDS  # 63

WRIST = 0


def _point_to_xyz(point):
    if isinstance(point, dict):
        try:
            return [point["x"], point["y"], point["z"]]
        except KeyError as e:
            raise InvalidLandmarkCount(f"Landmark is missing coordinate {e}") from e
    return list(point)


def landmarks_to_array(landmarks):
    """
    Accept 21 {x, y, z} dicts, 21 (x, y, z) sequences, a (21, 3) array or a flat
    (63,) array. Output: (21, 3) float64. Non-finite values are kept as-is.
    """
    if landmarks is None:
        raise InvalidLandmarkCount("No landmarks given")
    if isinstance(landmarks, np.ndarray):
        pts = landmarks
    else:
        if len(landmarks) != NUM_LANDMARKS:
            raise InvalidLandmarkCount(
                f"Expected {NUM_LANDMARKS} landmarks, got {len(landmarks)}"
            )
        pts = [_point_to_xyz(p) for p in landmarks]
    try:
        pts = np.asarray(pts, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidLandmarkCount(f"Malformed landmarks: {e}") from e
    if pts.size != EXPECTED_SIZE or (pts.ndim == 2 and pts.shape[1] != COORDS) or pts.ndim > 2:
        raise InvalidLandmarkCount(
            f"Expected {NUM_LANDMARKS}x{COORDS} coordinates, got shape {pts.shape}"
        )
    return pts.reshape(NUM_LANDMARKS, COORDS)


def normalize_landmarks(landmarks):
    """
    Center hand on the wrist and scale by the farthest landmark so distance from
    camera doesn't matter. Input: anything `landmarks_to_array` accepts.
    Output: (21, 3) float64.

    When every landmark sits on the wrist the centered points are returned
    unscaled (all zeros).
    """
    pts = landmarks_to_array(landmarks)
    # inf/nan coordinates propagate; extract_features rejects them
    with np.errstate(invalid="ignore", over="ignore"):
        pts_centered = pts - pts[WRIST]
        distances = np.linalg.norm(pts_centered, axis=1)
        positive = distances[distances > 0]
    if positive.size == 0:
        return pts_centered
    scale = positive.max()
    if not np.isfinite(scale):
        return pts_centered
    return pts_centered / scale


def array_to_landmarks(pts):
    """(21, 3) array back to the {x, y, z} dict form used on the wire and on disk."""
    return [{"x": float(x), "y": float(y), "z": float(z)} for x, y, z in np.asarray(pts)]
