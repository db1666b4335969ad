"""Centralized paths, network hyper-parameters and thresholds."""

import logging
import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_FOLDER = os.environ.get("SIGN_DATA_FOLDER", os.path.join(BASE_DIR, "data"))
MODELS_FOLDER = os.path.join(DATA_FOLDER, "models")

# MediaPipe hand: 21 landmarks, index 0 = WRIST
NUM_LANDMARKS = 21
COORDS = 3
FEATURE_LENGTH = 102

# Network (3 sigmoid hidden layers)
HIDDEN_LAYERS = (128, 64, 32)
ACTIVATION = "logistic"
LEARNING_RATE = float(os.environ.get("SIGN_LEARNING_RATE", 0.1))
MOMENTUM = float(os.environ.get("SIGN_MOMENTUM", 0.1))
DROPOUT = 0.1
TRAIN_ITERATIONS = int(os.environ.get("SIGN_TRAIN_ITERATIONS", 3000))
ERROR_THRESHOLD = 0.003
BATCH_SIZE = 32
LOG_PERIOD = 100
RANDOM_STATE = 42

MIN_SAMPLES_PER_SIGN = 3

# Confidence gates
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
PRACTICE_CONFIDENCE_THRESHOLD = 0.6
MIN_CONFIDENCE = 0.01
MAX_CONFIDENCE = 0.99
PARTIAL_CONFIDENCE = 0.5
MISMATCH_CONFIDENCE = 0.4

DEFAULT_DETECTION_SETTINGS = {
    "confidenceThreshold": DEFAULT_CONFIDENCE_THRESHOLD,
    "predictionDelay": 500,
    "maxPredictions": 10,
    "autoCapture": True,
    "stabilization": True,
}

LOG_LEVEL = os.environ.get("SIGN_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level=None):
    """Configure root logging once for the app and the training script."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
