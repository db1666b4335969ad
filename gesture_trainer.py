"""
Train the sign classifier: feature vectors + labels -> ClassifierArtifact.

The network is a scikit-learn MLPClassifier (3 sigmoid hidden layers, SGD with
momentum) trained one epoch at a time so the error and accuracy reported for
every epoch are the real ones. Dropout is applied to the inputs of each epoch.
"""
import base64
import logging
import pickle
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.metrics import accuracy_score, recall_score
from sklearn.neural_network import MLPClassifier

import config
from errors import TrainingDataInsufficient
from features import preprocess_samples

logger = logging.getLogger(__name__)


@dataclass
class TrainerConfig:
    hidden_layers: Tuple[int, ...] = config.HIDDEN_LAYERS
    activation: str = config.ACTIVATION
    learning_rate: float = config.LEARNING_RATE
    momentum: float = config.MOMENTUM
    dropout: float = config.DROPOUT
    iterations: int = config.TRAIN_ITERATIONS
    error_threshold: float = config.ERROR_THRESHOLD
    batch_size: int = config.BATCH_SIZE
    log_period: int = config.LOG_PERIOD
    random_state: Optional[int] = config.RANDOM_STATE


@dataclass(frozen=True)
class TrainingEpoch:
    iteration: int
    error: float
    accuracy: float


@dataclass(frozen=True)
class ClassifierArtifact:
    """Trained network (pickled) plus the labels and statistics of the run that produced it."""

    network: bytes
    labels: Tuple[str, ...]
    iterations: int
    error: float
    feature_length: int = config.FEATURE_LENGTH
    trained_at: str = ""
    history: Tuple[TrainingEpoch, ...] = field(default_factory=tuple)

    def load_network(self):
        """Fresh network instance on every call; the artifact itself is never mutated."""
        return pickle.loads(self.network)

    def to_dict(self):
        return {
            "type": "neural_network",
            "network": base64.b64encode(self.network).decode("ascii"),
            "uniqueLabels": list(self.labels),
            "stats": {"iterations": self.iterations, "error": self.error},
            "featureLength": self.feature_length,
            "timestamp": self.trained_at,
            "history": [
                {"iteration": h.iteration, "error": h.error, "accuracy": h.accuracy}
                for h in self.history
            ],
        }

    @classmethod
    def from_dict(cls, data):
        stats = data.get("stats") or {}
        return cls(
            network=base64.b64decode(data["network"]),
            labels=tuple(data["uniqueLabels"]),
            iterations=int(stats.get("iterations", 0)),
            error=float(stats.get("error", 0.0)),
            feature_length=int(data.get("featureLength", config.FEATURE_LENGTH)),
            trained_at=data.get("timestamp", ""),
            history=tuple(
                TrainingEpoch(int(h["iteration"]), float(h["error"]), float(h["accuracy"]))
                for h in data.get("history", [])
            ),
        )


def check_sample_counts(sign_counts, minimum=config.MIN_SAMPLES_PER_SIGN):
    """Raise TrainingDataInsufficient naming every sign with fewer than `minimum` samples."""
    insufficient = sorted(sign for sign, count in sign_counts.items() if count < minimum)
    if insufficient:
        raise TrainingDataInsufficient(
            f"Need at least {minimum} samples per sign. "
            f"Insufficient samples for: {', '.join(insufficient)}",
            sign_counts,
        )


def _one_hot(labels, classes):
    return (np.asarray(labels)[:, None] == np.asarray(classes)[None, :]).astype(np.float64)


def _input_dropout(X, rate, rng):
    if rate <= 0:
        return X
    keep = 1.0 - rate
    mask = rng.random(X.shape) < keep
    return X * mask / keep


def _build_network(cfg, n_samples):
    return MLPClassifier(
        hidden_layer_sizes=tuple(cfg.hidden_layers),
        activation=cfg.activation,
        solver="sgd",
        learning_rate="constant",
        learning_rate_init=cfg.learning_rate,
        momentum=cfg.momentum,
        nesterovs_momentum=False,
        batch_size=max(1, min(cfg.batch_size, n_samples)),
        random_state=cfg.random_state,
    )


def train_classifier(
    features,
    labels: Sequence[str],
    cfg: Optional[TrainerConfig] = None,
    callback: Optional[Callable[[TrainingEpoch], None]] = None,
) -> ClassifierArtifact:
    """
    Fit the network on (features, labels).

    Stops after `cfg.iterations` epochs or as soon as the mean squared error
    between predicted scores and the one-hot targets drops below
    `cfg.error_threshold`. `callback` is called with every epoch's TrainingEpoch.
    """
    cfg = cfg or TrainerConfig()
    if cfg.iterations < 1:
        raise ValueError("iterations must be at least 1")
    labels =[str(label) for label in labels]
    X = np.asarray(features, dtype=np.float64)
    if X.size == 0 or not labels:
        raise TrainingDataInsufficient("No training data available")
    if X.ndim != 2 or len(X) != len(labels):
        raise ValueError(f"Got {len(X)} feature vectors for {len(labels)} labels")
    classes = sorted(set(labels))
    if len(classes) < 2:
        raise TrainingDataInsufficient(
            "Need at least 2 different signs to train", Counter(labels)
        )

    logger.info("Training with %d samples and %d unique signs", len(labels), len(classes))
    net = _build_network(cfg, len(labels))
    rng = np.random.default_rng(cfg.random_state)
    targets = _one_hot(labels, classes)
    y = np.asarray(labels)

    history: List[TrainingEpoch] = []
    epoch = None
    for iteration in range(1, cfg.iterations + 1):
        net.partial_fit(_input_dropout(X, cfg.dropout, rng), y, classes=classes)

        scores = net.predict_proba(X)
        error = float(np.mean((scores - targets) ** 2))
        accuracy = float(accuracy_score(y, net.classes_[np.argmax(scores, axis=1)]))
        epoch = TrainingEpoch(iteration, error, accuracy)
        if callback is not None:
            callback(epoch)
        if iteration % cfg.log_period == 0:
            history.append(epoch)
            logger.info("Training progress: %d iterations, error: %.5f", iteration, error)
        if error < cfg.error_threshold:
            break

    if not history or history[-1].iteration != epoch.iteration:
        history.append(epoch)
    logger.info("Training completed: %d iterations, error: %.5f", epoch.iteration, epoch.error)

    return ClassifierArtifact(
        network=pickle.dumps(net),
        labels=tuple(str(c) for c in net.classes_),
        iterations=epoch.iteration,
        error=epoch.error,
        feature_length=X.shape[1],
        trained_at=datetime.now(timezone.utc).isoformat(),
        history=tuple(history),
    )


def train_from_samples(samples, cfg=None, callback=None):
    """Preprocess stored samples ({landmarks, sign}) and train on the valid ones."""
    X, y = preprocess_samples(samples)
    logger.info("Preprocessed %d feature vectors from %d samples", len(y), len(samples))
    return train_classifier(X, y, cfg=cfg, callback=callback)


def training_report(artifact, features, labels):
    """Per-sign and overall accuracy of `artifact` on (features, labels)."""
    X = np.asarray(features, dtype=np.float64).reshape(len(labels), -1)
    net = artifact.load_network()
    predicted = net.predict(X)
    classes = list(artifact.labels)
    per_sign = recall_score(labels, predicted, labels=classes, average=None, zero_division=0)
    return {
        "accuracy": float(accuracy_score(labels, predicted)),
        "signAccuracy": {sign: float(acc) for sign, acc in zip(classes, per_sign)},
    }


def training_progress(artifact):
    """Progress curve for the UI, read from the real training history."""
    return {
        "epochs": [h.iteration for h in artifact.history],
        "accuracy": [h.accuracy for h in artifact.history],
        "loss": [h.error for h in artifact.history],
        "currentEpoch": artifact.iterations,
        "isComplete": True,
    }
