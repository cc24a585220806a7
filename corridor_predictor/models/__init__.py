"""Domain records and exceptions."""

from .exceptions import (
    EmptyTrainingSetError,
    EncodingError,
    LookupFailure,
    NumericError,
    PredictorError,
    RetrainError,
    TrainingError,
)
from .records import CorridorRecord, PaymentRecord

__all__ = [
    "CorridorRecord",
    "PaymentRecord",
    "PredictorError",
    "EncodingError",
    "LookupFailure",
    "NumericError",
    "TrainingError",
    "EmptyTrainingSetError",
    "RetrainError",
]
