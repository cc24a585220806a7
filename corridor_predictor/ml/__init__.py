"""ML package namespace."""

from .features import FEATURE_NAMES, FeatureVector, TrainingExample, encode_features, encode_training_record
from .model_handle import ModelHandle
from .scoring_model import PredictionResult, ScoringModel, derive_confidence
from .trainer import TrainingResult, train_scoring_model
from .training_data import build_training_frame
from .versioning import next_version

__all__ = [
    "FEATURE_NAMES",
    "FeatureVector",
    "TrainingExample",
    "encode_features",
    "encode_training_record",
    "ModelHandle",
    "PredictionResult",
    "ScoringModel",
    "derive_confidence",
    "TrainingResult",
    "train_scoring_model",
    "build_training_frame",
    "next_version",
]
