"""Exceptions raised by the sign recognition pipeline and its model store."""


class SignRecognitionError(Exception):
    """Base class for every error raised by this package."""


class InvalidLandmarkCount(SignRecognitionError):
    """A hand did not carry exactly 21 well-formed {x, y, z} landmarks."""


class NonFiniteFeature(SignRecognitionError):
    """Feature extraction produced a NaN or infinite value."""


class TrainingDataInsufficient(SignRecognitionError):
    """Training was asked for with no samples or fewer than two signs."""

    def __init__(self, message, sign_counts=None):
        super().__init__(message)
        self.sign_counts = dict(sign_counts or {})


class UntrainedModel(SignRecognitionError):
    """Prediction was requested for a model that has no classifier yet."""


class InferenceFailure(SignRecognitionError):
    """Unexpected fault while running the network forward pass."""


class ModelNotFound(SignRecognitionError):
    """No stored model record matches the requested id."""


class StorageError(SignRecognitionError):
    """A stored model record could not be read or written."""
