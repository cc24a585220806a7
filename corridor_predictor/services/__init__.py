"""Service layer exports."""

from .data_store import InMemoryPaymentDataStore, PaymentDataStore, PostgresPaymentDataStore
from .prediction_service import PredictionService
from .retrain_scheduler import RetrainScheduler
from .retraining_service import RetrainingService

__all__ = [
    "PaymentDataStore",
    "PostgresPaymentDataStore",
    "InMemoryPaymentDataStore",
    "PredictionService",
    "RetrainingService",
    "RetrainScheduler",
]
