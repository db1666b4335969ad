"""Practice feedback: (predicted sign, expected sign, confidence) -> feedback category."""
from enum import Enum

from config import DEFAULT_CONFIDENCE_THRESHOLD, MISMATCH_CONFIDENCE, PARTIAL_CONFIDENCE


class FeedbackCategory(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    MISMATCH = "mismatch"
    UNCLEAR = "unclear"


FEEDBACK_STYLE = {
    FeedbackCategory.SUCCESS: ("green", "check"),
    FeedbackCategory.PARTIAL: ("orange", "warning"),
    FeedbackCategory.MISMATCH: ("red", "x"),
    FeedbackCategory.UNCLEAR: ("gray", "eye-off"),
}


def classify_feedback(predicted, expected, confidence, threshold=DEFAULT_CONFIDENCE_THRESHOLD):
    """
    Decision table, first match wins:
      same sign, confidence >= threshold        -> success
      same sign, 0.5 <= confidence < threshold  -> partial
      other sign, confidence >= 0.4             -> mismatch
      anything else                             -> unclear
    """
    if predicted == expected:
        if confidence >= threshold:
            return FeedbackCategory.SUCCESS
        if PARTIAL_CONFIDENCE <= confidence:
            return FeedbackCategory.PARTIAL
    elif confidence >= MISMATCH_CONFIDENCE:
        return FeedbackCategory.MISMATCH
    return FeedbackCategory.UNCLEAR


def _message(category, predicted, expected, confidence):
    if category is FeedbackCategory.SUCCESS:
        return "Perfect! Sign performed correctly"
    if category is FeedbackCategory.PARTIAL:
        return f"Right sign, but work on precision ({confidence * 100:.0f}%)"
    if category is FeedbackCategory.MISMATCH:
        return f'Detected "{predicted}" instead of "{expected}"'
    return "Sign not clear. Keep your hand visible and steady"


def practice_feedback(prediction, expected, threshold=DEFAULT_CONFIDENCE_THRESHOLD):
    """
    JSON-ready feedback for one practice attempt built from a Prediction.
    Matching uses the recognized label only, so a sentinel never matches a sign.
    """
    category = classify_feedback(prediction.label, expected, prediction.confidence, threshold)
    color, icon = FEEDBACK_STYLE[category]
    return {
        "prediction": prediction.sign,
        "confidence": prediction.confidence,
        "expectedSign": expected,
        "isCorrect": category is FeedbackCategory.SUCCESS,
        "isPartiallyCorrect": category in (FeedbackCategory.SUCCESS, FeedbackCategory.PARTIAL),
        "status": category.value,
        "message": _message(category, prediction.sign, expected, prediction.confidence),
        "color": color,
        "icon": icon,
    }
