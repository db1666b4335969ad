"""
Model records on disk: one JSON file per model under MODELS_FOLDER.

A record holds the model's name, template, signs, settings, recorded samples,
the trained classifier artifact (opaque blob) and its real training progress,
plus practice statistics and per-sign learning progress. Files are replaced atomically so a reader never sees
a half-written classifier.
"""
import json
import logging
import os
import re
import tempfile
import threading
import uuid
from copy import deepcopy
from datetime import datetime, timezone

from config import DEFAULT_DETECTION_SETTINGS, MODELS_FOLDER
from errors import InvalidLandmarkCount, ModelNotFound, NonFiniteFeature, StorageError
from features import count_signs, landmarks_to_features
from gesture_trainer import ClassifierArtifact
from landmark_utils import array_to_landmarks, landmarks_to_array

logger = logging.getLogger(__name__)

MODEL_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

LEARNING_ACTIONS = ("view", "quiz", "study", "practice_start", "practice_complete", "practice_attempt")
DEFAULT_STUDY_TIME = 30  # seconds


def _now():
    return datetime.now(timezone.utc).isoformat()


def _empty_sign_progress():
    return {
        "viewed": 0,
        "correct": 0,
        "incorrect": 0,
        "mastered": False,
        "lastStudied": None,
        "studyTime": 0,
        "practiceAttempts": 0,
        "practiceSuccess": 0,
        "practiceAccuracy": 0,
    }


def _empty_learning():
    return {"signProgress": {}, "totalProgress": 0, "completedSigns": 0, "lastStudied": None}


def _load_json(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"Model file {path} is not valid JSON: {e}") from e


def _save_json(path, data):
    """Write to a temp file in the same folder, then swap it in."""
    folder = os.path.dirname(path)
    fd, tmp_path = tempfile.mkstemp(dir=folder, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise StorageError(f"Could not write {path}: {e}") from e


def validate_sample(sample, index=0):
    """Return the sample in stored form or raise for a bad sign/landmark set."""
    if not isinstance(sample, dict):
        raise ValueError(f"Sample {index + 1}: expected an object with sign and landmarks")
    sign =sample.get("sign") or sample.get("label")
    if not sign:
        raise ValueError(f"Sample {index + 1}: missing sign field")
    try:
        pts = landmarks_to_array(sample.get("landmarks"))
        landmarks_to_features(pts)
    except (InvalidLandmarkCount, NonFiniteFeature) as e:
        raise type(e)(f"Sample {index + 1}: {e}") from e
    return {
        "landmarks": array_to_landmarks(pts),
        "sign": str(sign),
        "timestamp": sample.get("timestamp") or _now(),
    }


class ModelStore:
    def __init__(self, models_folder=MODELS_FOLDER):
        self.models_folder = models_folder
        os.makedirs(self.models_folder, exist_ok=True)
        self._lock = threading.RLock()

    def _path(self, model_id):
        if not model_id or not MODEL_ID_PATTERN.match(str(model_id)):
            raise ModelNotFound(f"Model not found: {model_id}")
        return os.path.join(self.models_folder, f"{model_id}.json")

    def create_model(self, name, template, signs, settings=None):
        model_id = str(uuid.uuid4())
        detection = dict(DEFAULT_DETECTION_SETTINGS)
        detection.update((settings or {}).get("detection", {}))
        model = {
            "id": model_id,
            "name": name,
            "template": template,
            "signs": list(signs),
            "settings": {**(settings or {}), "detection": detection},
            "samples": [],
            "classifier": None,
            "createdAt": _now(),
            "practiceStats": {
                "totalPracticeSessions": 0,
                "averagePracticeAccuracy": 0,
                "signsPracticed": [],
            },
        }
        with self._lock:
            _save_json(self._path(model_id), model)
        logger.info("Created model %s (%s) with %d signs", model_id, name, len(model["signs"]))
        return model

    def get_model(self, model_id):
        path = self._path(model_id)
        if not os.path.exists(path):
            raise ModelNotFound(f"Model not found: {model_id}")
        return _load_json(path)

    def list_models(self):
        models = []
        for filename in os.listdir(self.models_folder):
            if not filename.endswith(".json"):
                continue
            try:
                models.append(_load_json(os.path.join(self.models_folder, filename)))
            except StorageError:
                logger.warning("Skipping unreadable model file %s", filename)
        return sorted(models, key=lambda m: m.get("createdAt", ""), reverse=True)

    def update_model(self, model_id, updates):
        with self._lock:
            model = self.get_model(model_id)
            model.update(updates)
            model["updatedAt"] = _now()
            _save_json(self._path(model_id), model)
        return model

    def delete_model(self, model_id):
        path = self._path(model_id)
        with self._lock:
            if not os.path.exists(path):
                raise ModelNotFound(f"Model not found: {model_id}")
            os.remove(path)
        logger.info("Deleted model %s", model_id)

    def add_samples(self, model_id, samples):
        """Validate and append samples. Nothing is stored if any sample is bad."""
        new_samples = [validate_sample(s, i) for i, s in enumerate(samples)]
        with self._lock:
            model = self.get_model(model_id)
            updated = (model.get("samples") or []) + new_samples
            return self.update_model(model_id, {"samples": updated})

    def update_settings(self, model_id, settings):
        with self._lock:
            model = self.get_model(model_id)
            merged = deepcopy(model.get("settings") or {})
            for key, value in settings.items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key].update(value)
                else:
                    merged[key] = value
            return self.update_model(model_id, {"settings": merged})

    def save_classifier(self, model_id, artifact, progress, report):
        """Replace the model's classifier and training results in one write."""
        with self._lock:
            model = self.get_model(model_id)
            return self.update_model(model_id, {
                "classifier": artifact.to_dict(),
                "trainingProgress": progress,
                "trainedAt": artifact.trained_at,
                "accuracy": report["accuracy"],
                "signAccuracy": report["signAccuracy"],
                "sampleCounts": count_signs(model.get("samples") or []),
            })

    def load_artifact(self, model_id):
        """The model's ClassifierArtifact, or None if it was never trained."""
        classifier = self.get_model(model_id).get("classifier")
        if not classifier or not classifier.get("network"):
            return None
        try:
            return ClassifierArtifact.from_dict(classifier)
        except (KeyError, ValueError, TypeError) as e:
            raise StorageError(f"Stored classifier for {model_id} is corrupt: {e}") from e

    def update_practice_stats(self, model_id, sign, accuracy):
        """Count one practice session and fold its accuracy into the running average."""
        with self._lock:
            model = self.get_model(model_id)
            stats = model.get("practiceStats") or {}
            sessions = stats.get("totalPracticeSessions", 0)
            average = stats.get("averagePracticeAccuracy", 0)
            practiced = list(stats.get("signsPracticed", []))
            if sign not in practiced:
                practiced.append(sign)
            updated = {
                "totalPracticeSessions": sessions + 1,
                "averagePracticeAccuracy": (average * sessions + accuracy) / (sessions + 1),
                "signsPracticed": practiced,
            }
            self.update_model(model_id, {"practiceStats": updated})
        return updated

    def update_sign_progress(self, model_id, sign, action, correct=False, time=None, attempts=None):
        """
        Apply one learning event to a sign and recompute mastery.

        quiz: a correct answer masters the sign once correct >= 5 and
        correct > 2 * incorrect; a wrong answer clears mastery.
        practice_complete: masters the sign at >= 80% practice accuracy over
        at least 5 attempts.
        """
        if action not in LEARNING_ACTIONS:
            raise ValueError(f"Unknown learning action: {action}")
        with self._lock:
            model = self.get_model(model_id)
            learning = deepcopy(model.get("learningProgress") or _empty_learning())
            progress = {**_empty_sign_progress(), **learning["signProgress"].get(sign, {})}

            if action == "view":
                progress["viewed"] += 1
            elif action == "quiz":
                if correct:
                    progress["correct"] += 1
                    if progress["correct"] >= 5 and progress["correct"] > progress["incorrect"] * 2:
                        progress["mastered"] = True
                else:
                    progress["incorrect"] += 1
                    progress["mastered"] = False
            elif action == "study":
                progress["studyTime"] += time or DEFAULT_STUDY_TIME
            elif action in ("practice_attempt", "practice_complete"):
                progress["practiceAttempts"] += (attempts or 1) if action == "practice_complete" else 1
                if correct:
                    progress["practiceSuccess"] += 1
                progress["practiceAccuracy"] = progress["practiceSuccess"] / progress["practiceAttempts"] * 100
                if (action == "practice_complete" and progress["practiceAccuracy"] >= 80
                        and progress["practiceAttempts"] >= 5):
                    progress["mastered"] = True

            now = _now()
            progress["lastStudied"] = now
            learning["signProgress"][sign] = progress
            learning["completedSigns"] = sum(1 for p in learning["signProgress"].values() if p["mastered"])
            total_signs = len(model.get("signs") or [])
            learning["totalProgress"] = round(learning["completedSigns"] / total_signs * 100) if total_signs else 0
            learning["lastStudied"] = now
            self.update_model(model_id, {"learningProgress": learning})
        logger.debug("Learning progress for %s/%s after %s: %s", model_id, sign, action, progress)
        return learning

    def learning_stats(self, model_id):
        """Learning progress plus one entry per model sign, unseen signs zeroed."""
        model = self.get_model(model_id)
        learning = model.get("learningProgress") or _empty_learning()
        signs = model.get("signs") or []
        return {
            **learning,
            "totalSigns": len(signs),
            "signStats": [
                {"sign": sign, "progress": learning["signProgress"].get(sign) or _empty_sign_progress()}
                for sign in signs
            ],
        }
