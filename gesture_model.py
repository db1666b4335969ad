"""
Sign prediction from a trained ClassifierArtifact.

The network is rebuilt from the artifact's serialized state on every call, so
predictions are deterministic and safe to run concurrently against the same
artifact. Per-frame problems never raise: they come back as a Prediction whose
status says what went wrong.
"""
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

import numpy as np

from config import DEFAULT_CONFIDENCE_THRESHOLD, FEATURE_LENGTH, MAX_CONFIDENCE, MIN_CONFIDENCE
from errors import InferenceFailure, InvalidLandmarkCount, NonFiniteFeature
from features import landmarks_to_features

logger = logging.getLogger(__name__)


class PredictionStatus(str, Enum):
    RECOGNIZED = "recognized"
    UNCERTAIN = "uncertain"
    UNKNOWN = "unknown"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True)
class Prediction:
    status: PredictionStatus
    confidence: float
    label: Optional[str] = None
    scores: Dict[str, float] = field(default_factory=dict)
    reason: str = ""

    @property
    def recognized(self):
        return self.status is PredictionStatus.RECOGNIZED

    @property
    def sign(self):
        """Single displayable string: the label, or UNCERTAIN/UNKNOWN/INVALID/ERROR."""
        if self.recognized:
            return self.label
        return self.status.name

    def to_dict(self):
        return {
            "prediction": self.sign,
            "status": self.status.value,
            "confidence": self.confidence,
            "allPredictions": dict(self.scores),
            "reason": self.reason,
        }


def _failed(status, reason):
    return Prediction(status=status, confidence=0.0, reason=reason)


def load_network(artifact):
    return artifact.load_network()


def _clamp(confidence):
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))


def _forward(artifact, features):
    try:
        net = load_network(artifact)
        scores = net.predict_proba(features.reshape(1, -1))[0]
        return {str(label): float(s) for label, s in zip(net.classes_, scores)}
    except Exception as e:
        raise InferenceFailure(str(e)) from e


def predict_features(artifact, features, confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD):
    """
    Label + confidence for one 102-value feature vector.

    The top-scoring label wins. If its score is below half the threshold the
    result is UNCERTAIN with half the score. Confidence is clamped to
    [0.01, 0.99].
    """
    if artifact is None:
        return _failed(PredictionStatus.UNKNOWN, "No classifier found in model")
    if features is None:
        return _failed(PredictionStatus.INVALID, "No features")
    try:
        features = np.asarray(features, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError):
        return _failed(PredictionStatus.INVALID, "Features are not numeric")
    expected = getattr(artifact, "feature_length", FEATURE_LENGTH)
    if features.size != expected or not np.all(np.isfinite(features)):
        return _failed(PredictionStatus.INVALID, "Invalid features extracted")
    if confidence_threshold is None:
        confidence_threshold = DEFAULT_CONFIDENCE_THRESHOLD

    try:
        scores = _forward(artifact, features)
    except InferenceFailure as e:
        logger.exception("Prediction error")
        return _failed(PredictionStatus.ERROR, str(e))

    label, confidence = max(scores.items(), key=lambda item: item[1])
    status = PredictionStatus.RECOGNIZED
    if confidence < confidence_threshold * 0.5:
        status = PredictionStatus.UNCERTAIN
        confidence *= 0.5
    logger.debug("Final prediction: %s (%s) with confidence %.3f", label, status.value, confidence)
    return Prediction(
        status=status,
        confidence=_clamp(confidence),
        label=label if status is PredictionStatus.RECOGNIZED else None,
        scores=scores,
    )


def predict_sign(artifact, landmarks, confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD):
    """Normalize + extract features for one hand of 21 landmarks, then predict."""
    if artifact is None:
        return _failed(PredictionStatus.UNKNOWN, "No classifier found in model")
    try:
        features = landmarks_to_features(landmarks)
    except (InvalidLandmarkCount, NonFiniteFeature) as e:
        return _failed(PredictionStatus.INVALID, str(e))
    return predict_features(artifact, features, confidence_threshold)


class ClassifierCache:
    """
    Owned cache of immutable artifacts keyed by model id.
    Entries are swapped whole, so readers see the old or the new artifact.
    A load that overlaps a `put` or `invalidate` is not stored over the newer state.
    """

    def __init__(self):
        self._artifacts = {}
        self._generations = {}
        self._lock = threading.Lock()

    def _bump(self, model_id):
        self._generations[model_id] = self._generations.get(model_id, 0) + 1

    def get(self, model_id, loader):
        with self._lock:
            if model_id in self._artifacts:
                return self._artifacts[model_id]
            generation = self._generations.get(model_id, 0)
        artifact = loader(model_id)
        with self._lock:
            if self._generations.get(model_id, 0) != generation:
                return self._artifacts.get(model_id, artifact)
            if artifact is not None:
                self._artifacts[model_id] = artifact
        return artifact

    def put(self, model_id, artifact):
        with self._lock:
            self._bump(model_id)
            self._artifacts[model_id] = artifact

    def invalidate(self, model_id):
        with self._lock:
            self._bump(model_id)
            self._artifacts.pop(model_id, None)

    def __contains__(self, model_id):
        with self._lock:
            return model_id in self._artifacts
