import pytest

from feedback import FeedbackCategory, classify_feedback, practice_feedback
from gesture_model import Prediction, PredictionStatus


@pytest.mark.parametrize("predicted, expected, confidence, category", [
    ("A", "A", 0.85, FeedbackCategory.SUCCESS),
    ("A", "A", 0.7, FeedbackCategory.SUCCESS),
    ("A", "A", 0.55, FeedbackCategory.PARTIAL),
    ("A", "A", 0.5, FeedbackCategory.PARTIAL),
    ("A", "A", 0.45, FeedbackCategory.UNCLEAR),
    ("B", "A", 0.45, FeedbackCategory.MISMATCH),
    ("B", "A", 0.95, FeedbackCategory.MISMATCH),
    ("B", "A", 0.2, FeedbackCategory.UNCLEAR),
    ("UNCERTAIN", "A", 0.1, FeedbackCategory.UNCLEAR),
])
def test_decision_table(predicted, expected, confidence, category):
    assert classify_feedback(predicted, expected, confidence) is category


def test_threshold_moves_success_boundary():
    assert classify_feedback("A", "A", 0.65, threshold=0.6) is FeedbackCategory.SUCCESS
    assert classify_feedback("A", "A", 0.75, threshold=0.8) is FeedbackCategory.PARTIAL


def test_practice_feedback_success():
    prediction = Prediction(PredictionStatus.RECOGNIZED, 0.9, label="HOLA")
    out = practice_feedback(prediction, "HOLA")
    assert out["status"] == "success"
    assert out["isCorrect"] is True
    assert out["isPartiallyCorrect"] is True
    assert out["color"] == "green"


def test_practice_feedback_mismatch_names_both_signs():
    prediction = Prediction(PredictionStatus.RECOGNIZED, 0.6, label="B")
    out = practice_feedback(prediction, "A")
    assert out["status"] == "mismatch"
    assert '"B"' in out["message"] and '"A"' in out["message"]
    assert out["isCorrect"] is False


def test_practice_feedback_for_sentinel_prediction():
    out = practice_feedback(Prediction(PredictionStatus.INVALID, 0.0), "A")
    assert out["prediction"] == "INVALID"
    assert out["status"] == "unclear"
    assert out["icon"] == "eye-off"


def test_sign_named_like_a_sentinel_is_not_matched_by_one():
    uncertain = Prediction(PredictionStatus.UNCERTAIN, 0.55, scores={"UNCERTAIN": 0.99})
    out = practice_feedback(uncertain, "UNCERTAIN")
    assert out["prediction"] == "UNCERTAIN"
    assert out["isCorrect"] is False
    assert out["isPartiallyCorrect"] is False


def test_sign_named_like_a_sentinel_can_still_be_recognized():
    prediction = Prediction(PredictionStatus.RECOGNIZED, 0.9, label="ERROR")
    assert practice_feedback(prediction, "ERROR")["status"] == "success"
    assert practice_feedback(Prediction(PredictionStatus.ERROR, 0.0), "ERROR")["status"] == "unclear"
