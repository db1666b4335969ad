"""
Sign trainer: Flask backend
Model management, training, prediction and practice feedback over JSON.
"""
import logging
import math
from datetime import datetime, timezone

from flask import Flask, current_app, jsonify, request

import config
from errors import (
    InvalidLandmarkCount,
    ModelNotFound,
    NonFiniteFeature,
    StorageError,
    TrainingDataInsufficient,
    UntrainedModel,
)
from features import count_signs, preprocess_samples
from feedback import practice_feedback
from gesture_model import ClassifierCache, predict_sign
from gesture_trainer import (
    TrainerConfig,
    check_sample_counts,
    train_classifier,
    training_progress,
    training_report,
)
from model_store import ModelStore

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc).isoformat()


def _summary(model):
    """Model record without the bulky samples and network blob."""
    out = {k: v for k, v in model.items() if k not in ("samples", "classifier")}
    classifier = model.get("classifier") or {}
    out["totalSamples"] = len(model.get("samples") or [])
    out["isTrained"] = bool(classifier.get("network"))
    if classifier:
        out["classifierStats"] = classifier.get("stats")
    return out


def _store():
    return current_app.extensions["model_store"]


def _cache():
    return current_app.extensions["classifier_cache"]


def _artifact(model_id):
    artifact = _cache().get(model_id, _store().load_artifact)
    if artifact is None:
        raise UntrainedModel("Model not trained yet")
    return artifact


def _detection_settings(model, overrides, defaults=None):
    """Defaults, then the model's detection settings, then the request. A null threshold falls back."""
    defaults = {"confidenceThreshold": config.DEFAULT_CONFIDENCE_THRESHOLD, **(defaults or {})}
    settings = dict(defaults)
    settings.update((model.get("settings") or {}).get("detection") or {})
    if overrides is not None and not isinstance(overrides, dict):
        raise ValueError("settings must be an object")
    settings.update(overrides or {})
    threshold = settings.get("confidenceThreshold")
    if threshold is None:
        threshold = defaults["confidenceThreshold"]
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not math.isfinite(threshold):
        raise ValueError(f"confidenceThreshold must be a number, got {threshold!r}")
    settings["confidenceThreshold"] = float(threshold)
    return settings


def _valid_landmarks(landmarks):
    return isinstance(landmarks, list) and len(landmarks) == config.NUM_LANDMARKS


def register_error_handlers(app):
    @app.errorhandler(ModelNotFound)
    def model_not_found(e):
        return jsonify({"error": "Model not found"}), 404

    @app.errorhandler(TrainingDataInsufficient)
    def insufficient_data(e):
        return jsonify({"error": str(e), "signCounts": e.sign_counts}), 400

    @app.errorhandler(UntrainedModel)
    def untrained(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(InvalidLandmarkCount)
    @app.errorhandler(NonFiniteFeature)
    @app.errorhandler(ValueError)
    def bad_input(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(StorageError)
    def storage_error(e):
        logger.error("Storage error: %s", e)
        return jsonify({"error": str(e)}), 500


def register_routes(app):
    # -------------------------------------------------
    # MODELS
    # -------------------------------------------------
    @app.route("/api/models", methods=["POST"])
    def create_model():
        data = request.get_json(silent=True) or {}
        name, template, signs = data.get("name"), data.get("template"), data.get("signs")
        if not name or not template or not signs:
            return jsonify({"error": "Missing required fields"}), 400
        model = _store().create_model(name, template, signs, data.get("settings"))
        return jsonify(_summary(model))

    @app.route("/api/models", methods=["GET"])
    def list_models():
        return jsonify([_summary(m) for m in _store().list_models()])

    @app.route("/api/models/<model_id>", methods=["GET"])
    def get_model(model_id):
        model = _store().get_model(model_id)
        out = _summary(model)
        out["sampleCounts"] = count_signs(model.get("samples") or [])
        return jsonify(out)

    @app.route("/api/models/<model_id>", methods=["DELETE"])
    def delete_model(model_id):
        _store().delete_model(model_id)
        _cache().invalidate(model_id)
        return jsonify({"message": "Model deleted successfully"})

    @app.route("/api/models/<model_id>/settings", methods=["POST"])
    def update_settings(model_id):
        data = request.get_json(silent=True) or {}
        settings = data.get("settings")
        if not isinstance(settings, dict):
            return jsonify({"error": "Missing settings"}), 400
        return jsonify(_summary(_store().update_settings(model_id, settings)))

    @app.route("/api/models/<model_id>/samples", methods=["POST"])
    def add_samples(model_id):
        data = request.get_json(silent=True) or {}
        samples = data.get("samples")
        if not isinstance(samples, list) or not samples:
            return jsonify({"error": "Samples must be a non-empty array"}), 400
        model = _store().add_samples(model_id, samples)
        return jsonify({
            "totalSamples": len(model["samples"]),
            "sampleCounts": count_signs(model["samples"]),
        })

    # -------------------------------------------------
    # TRAINING
    # -------------------------------------------------
    @app.route("/api/training/train", methods=["POST"])
    def train():
        data = request.get_json(silent=True) or {}
        model_id = data.get("modelId")
        samples = data.get("samples") or []
        if not model_id or not isinstance(samples, list):
            return jsonify({"error": "Invalid training data"}), 400

        store = _store()
        model = store.add_samples(model_id, samples) if samples else store.get_model(model_id)
        all_samples = model.get("samples") or []
        sign_counts = count_signs(all_samples)
        if len(all_samples) < 2:
            raise TrainingDataInsufficient("Need at least 2 samples to train", sign_counts)
        check_sample_counts(sign_counts, current_app.config["MIN_SAMPLES_PER_SIGN"])

        X, y = preprocess_samples(all_samples)
        artifact = train_classifier(X, y, current_app.config["TRAINER_CONFIG"])
        report = training_report(artifact, X, y)
        progress = training_progress(artifact)
        model = store.save_classifier(model_id, artifact, progress, report)
        _cache().put(model_id, artifact)

        return jsonify({
            "message": "Training completed successfully",
            "progress": progress,
            "model": _summary(model),
            "totalSamples": len(all_samples),
            "signCounts": sign_counts,
        })

    @app.route("/api/training/status/<model_id>", methods=["GET"])
    def training_status(model_id):
        model = _store().get_model(model_id)
        samples = model.get("samples") or []
        return jsonify({
            "isTraining": False,
            "progress": model.get("trainingProgress"),
            "lastTraining": model.get("trainedAt"),
            "sampleCounts": count_signs(samples),
            "totalSamples": len(samples),
            "isTrained": bool((model.get("classifier") or {}).get("network")),
        })

    # -------------------------------------------------
    # PREDICTION
    # -------------------------------------------------
    @app.route("/api/prediction/predict", methods=["POST"])
    def predict():
        data = request.get_json(silent=True) or {}
        model_id, landmarks = data.get("modelId"), data.get("landmarks")
        if not model_id or not _valid_landmarks(landmarks):
            return jsonify({"error": "Invalid prediction data"}), 400

        model = _store().get_model(model_id)
        artifact = _artifact(model_id)
        settings = _detection_settings(model, data.get("settings"))
        prediction = predict_sign(artifact, landmarks, settings["confidenceThreshold"])
        logger.info("Prediction for %s: %s (%.3f)", model_id, prediction.sign, prediction.confidence)

        out = prediction.to_dict()
        out.update({"modelId": model_id, "timestamp": _now(), "settings": settings})
        return jsonify(out)

    @app.route("/api/prediction/practice-predict", methods=["POST"])
    def practice_predict():
        data = request.get_json(silent=True) or {}
        model_id, landmarks = data.get("modelId"), data.get("landmarks")
        expected = data.get("expectedSign")
        if not model_id or not _valid_landmarks(landmarks) or not expected:
            return jsonify({"error": "Invalid practice prediction data"}), 400

        model = _store().get_model(model_id)
        artifact = _artifact(model_id)
        settings = _detection_settings(
            model,
            data.get("settings"),
            defaults={"confidenceThreshold": config.PRACTICE_CONFIDENCE_THRESHOLD},
        )
        prediction = predict_sign(artifact, landmarks, settings["confidenceThreshold"])
        out = practice_feedback(prediction, expected)
        out["timestamp"] = _now()
        return jsonify(out)

    @app.route("/api/prediction/batch-predict", methods=["POST"])
    def batch_predict():
        data = request.get_json(silent=True) or {}
        model_id, landmarks_list = data.get("modelId"), data.get("landmarksList")
        if not model_id or not isinstance(landmarks_list, list):
            return jsonify({"error": "Invalid batch prediction data"}), 400

        model = _store().get_model(model_id)
        artifact = _artifact(model_id)
        settings = _detection_settings(model, data.get("settings"))
        predictions = []
        for landmarks in landmarks_list:
            if not _valid_landmarks(landmarks):
                predictions.append({"error": "Invalid landmarks length"})
                continue
            predictions.append(
                predict_sign(artifact, landmarks, settings["confidenceThreshold"]).to_dict()
            )
        return jsonify({
            "predictions": predictions,
            "modelId": model_id,
            "timestamp": _now(),
            "total": len(predictions),
        })

    # -------------------------------------------------
    # LEARNING
    # -------------------------------------------------
    @app.route("/api/learning/practice-stats", methods=["POST"])
    def practice_stats():
        data = request.get_json(silent=True) or {}
        model_id, sign, accuracy = data.get("modelId"), data.get("sign"), data.get("accuracy")
        if not model_id or not sign or not isinstance(accuracy, (int, float)):
            return jsonify({"error": "Missing required fields"}), 400
        stats = _store().update_practice_stats(model_id, sign, float(accuracy))
        return jsonify(stats)

    @app.route("/api/learning/progress", methods=["POST"])
    def learning_progress():
        data = request.get_json(silent=True) or {}
        model_id, sign, action = data.get("modelId"), data.get("sign"), data.get("action")
        if not model_id or not sign or not action:
            return jsonify({"error": "Missing required fields"}), 400
        progress = _store().update_sign_progress(
            model_id,
            sign,
            action,
            correct=bool(data.get("correct")),
            time=data.get("time"),
            attempts=data.get("attempts"),
        )
        return jsonify(progress)

    @app.route("/api/learning/stats/<model_id>", methods=["GET"])
    def learning_stats(model_id):
        return jsonify(_store().learning_stats(model_id))


def create_app(store=None, trainer_config=None):
    app = Flask(__name__)
    app.config["MIN_SAMPLES_PER_SIGN"] = config.MIN_SAMPLES_PER_SIGN
    app.config["TRAINER_CONFIG"] = trainer_config or TrainerConfig()
    app.extensions["model_store"] = store or ModelStore()
    app.extensions["classifier_cache"] = ClassifierCache()
    register_error_handlers(app)
    register_routes(app)
    return app


if __name__ == "__main__":
    config.setup_logging()
    create_app().run(debug=True, port=5000)
