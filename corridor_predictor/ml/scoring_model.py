"""Feed-forward scoring network for payment success probability."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import torch
import torch.nn as nn

from corridor_predictor.models.exceptions import NumericError

from .features import FEATURE_NAMES, FeatureVector

logger = logging.getLogger(__name__)

INPUT_DIM = len(FEATURE_NAMES)
HIDDEN_DIMS = (32, 16)
DEFAULT_MODEL_VERSION = "1.0.0"

HIGH_CONFIDENCE = 0.9
LOW_CONFIDENCE = 0.7
DECISIVE_UPPER = 0.7
DECISIVE_LOWER = 0.3


def derive_confidence(probability: float) -> float:
    """Map a probability to a heuristic confidence.

    Strictly above 0.7 or strictly below 0.3 is decisive (0.9); the closed
    band ``[0.3, 0.7]`` around the decision boundary is 0.7.
    """
    if probability > DECISIVE_UPPER or probability < DECISIVE_LOWER:
        return HIGH_CONFIDENCE
    return LOW_CONFIDENCE


@dataclass(frozen=True)
class PredictionResult:
    """Output of a single prediction."""

    success_probability: float
    confidence: float
    model_version: str


class ScoringModel(nn.Module):
    """linear(6->32) -> ReLU -> linear(32->16) -> ReLU -> linear(16->1) -> sigmoid."""

    def __init__(self, version: str = DEFAULT_MODEL_VERSION) -> None:
        super().__init__()
        self.layer1 = nn.Linear(INPUT_DIM, HIDDEN_DIMS[0])
        self.layer2 = nn.Linear(HIDDEN_DIMS[0], HIDDEN_DIMS[1])
        self.layer3 = nn.Linear(HIDDEN_DIMS[1], 1)
        self._model_version = version

    @property
    def version(self) -> str:
        return self._model_version

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x = torch.relu(self.layer1(x))
        x = torch.relu(self.layer2(x))
        return torch.sigmoid(self.layer3(x))

    def freeze(self) -> "ScoringModel":
        """Switch to inference mode and stop tracking gradients."""
        self.eval()
        self.requires_grad_(False)
        return self

    def with_version(self, version: str) -> "ScoringModel":
        """Return a frozen copy of this model's parameters under a new version tag."""
        clone = ScoringModel(version=version)
        clone.load_state_dict(self.state_dict())
        return clone.freeze()

    def score(self, features: FeatureVector) -> float:
        """Return the success probability for one feature vector."""
        inputs = torch.tensor([features.to_list()], dtype=torch.float32)
        with torch.no_grad():
            output = self(inputs)
        probability = float(output[0, 0].item())
        if not math.isfinite(probability):
            raise NumericError(
                "Forward pass produced non-finite output version={0}".format(self._model_version)
            )
        return probability

    def predict(self, features: FeatureVector) -> PredictionResult:
        """Run the forward pass and derive confidence from the probability."""
        probability = self.score(features)
        return PredictionResult(
            success_probability=probability,
            confidence=derive_confidence(probability),
            model_version=self._model_version,
        )
