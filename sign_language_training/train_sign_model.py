"""
Train (or retrain) the classifier of a stored sign model.
Uses SINGLE FRAME samples (21 hand landmarks each) so the model matches
gesture_model.py at runtime (landmarks -> 102 features -> predict).

Data: the model's samples in data/models/<model_id>.json, recorded through the API.

Improvements for accuracy:
- Data augmentation (Gaussian noise on raw landmarks) to increase effective training data

Run from any directory; the project root is the parent of sign_language_training.
Output: the classifier is written back into the model record.
"""

import argparse
import logging
import os
import sys

import numpy as np
from sklearn.metrics import classification_report

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(SCRIPT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import config  # noqa: E402
from errors import SignRecognitionError  # noqa: E402
from features import count_signs, preprocess_samples  # noqa: E402
from gesture_trainer import (  # noqa: E402
    TrainerConfig,
    check_sample_counts,
    train_classifier,
    training_progress,
    training_report,
)
from landmark_utils import array_to_landmarks, landmarks_to_array  # noqa: E402
from model_store import ModelStore  # noqa: E402

logger = logging.getLogger("train_sign_model")


def augment_sample(sample, n_augment=4, noise_std=0.008, rng=None):
    """Create augmented copies with small Gaussian noise. Returns list of (n_augment+1) samples."""
    rng = rng or np.random.default_rng()
    pts = landmarks_to_array(sample["landmarks"])
    out = [sample]
    for _ in range(n_augment):
        noisy = pts + rng.normal(0.0, noise_std, size=pts.shape)
        out.append({**sample, "landmarks": array_to_landmarks(noisy)})
    return out


def load_training_samples(store, model_id, augment=True, augment_factor=4, seed=None):
    """Stored samples of one model, optionally augmented. Returns (samples, sign_counts)."""
    samples = store.get_model(model_id).get("samples") or []
    sign_counts = count_signs(samples)
    if not augment:
        return samples, sign_counts
    rng = np.random.default_rng(seed)
    augmented = []
    for sample in samples:
        augmented.extend(augment_sample(sample, n_augment=augment_factor, rng=rng))
    return augmented, sign_counts


def main(argv=None):
    parser = argparse.ArgumentParser(description="Train the sign classifier of a stored model")
    parser.add_argument("--model-id", required=True, help="Id of the model record to train")
    parser.add_argument("--models-folder", default=config.MODELS_FOLDER, help="Folder holding model records")
    parser.add_argument("--iterations", type=int, default=config.TRAIN_ITERATIONS, help="Maximum training epochs")
    parser.add_argument("--no-augment", action="store_true", help="Disable data augmentation")
    parser.add_argument("--augment-factor", type=int, default=4, help="Augmented copies per sample (default 4)")
    parser.add_argument("--seed", type=int, default=config.RANDOM_STATE, help="Seed for augmentation and training")
    args = parser.parse_args(argv)

    config.setup_logging()
    store = ModelStore(args.models_folder)

    try:
        samples, sign_counts = load_training_samples(
            store, args.model_id,
            augment=not args.no_augment,
            augment_factor=args.augment_factor,
            seed=args.seed,
        )
        check_sample_counts(sign_counts)
        print(f"Loading samples for {args.model_id}: {sum(sign_counts.values())} recorded, "
              f"{len(samples)} after augmentation, signs: {sorted(sign_counts)}")

        X, y = preprocess_samples(samples)
        cfg = TrainerConfig(iterations=args.iterations, random_state=args.seed)
        print("Training MLPClassifier (3 sigmoid hidden layers)...")
        artifact = train_classifier(X, y, cfg)
        report = training_report(artifact, X, y)
        store.save_classifier(args.model_id, artifact, training_progress(artifact), report)
    except SignRecognitionError as e:
        logger.error("%s", e)
        return 1

    print(f"  Iterations: {artifact.iterations}, final error: {artifact.error:.5f}")
    print(f"  Training accuracy: {report['accuracy'] * 100:.2f}%")
    print(classification_report(y, artifact.load_network().predict(X), zero_division=0))
    print(f"Saved classifier to model {args.model_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
