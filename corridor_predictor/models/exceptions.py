"""Custom exceptions for the prediction and retraining layers."""


class PredictorError(Exception):
    """Base class for prediction service failures."""


class EncodingError(PredictorError):
    """Raised when raw payment attributes cannot be encoded as finite features."""


class LookupFailure(PredictorError):
    """Raised when the payment data store is unavailable or a query fails."""


class NumericError(PredictorError):
    """Raised when a forward or backward pass produces non-finite values."""


class TrainingError(PredictorError):
    """Base class for training procedure failures."""


class EmptyTrainingSetError(TrainingError):
    """Raised when a training run receives zero examples."""


class RetrainError(PredictorError):
    """Raised when a retraining cycle aborts and the prior model stays active."""
