"""Request and response schemas for the prediction API."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from corridor_predictor.ml.scoring_model import PredictionResult


LOW_RISK_THRESHOLD = 0.8
MEDIUM_RISK_THRESHOLD = 0.5


def classify_risk_level(success_probability: float) -> str:
    """Map a success probability to a downstream risk label."""
    if success_probability >= LOW_RISK_THRESHOLD:
        return "low"
    if success_probability >= MEDIUM_RISK_THRESHOLD:
        return "medium"
    return "high"


_RECOMMENDATIONS = {
    "low": "Proceed with payment on this corridor.",
    "medium": "Proceed with caution; monitor settlement closely.",
    "high": "High risk of failure; consider an alternative corridor or a smaller amount.",
}


class PredictRequest(BaseModel):
    """Payment to score before routing."""

    corridor: str = Field(..., min_length=1, max_length=256)
    amount_usd: float = Field(..., ge=0)
    timestamp: Optional[datetime] = Field(default=None, description="UTC payment time; defaults to now.")


class PredictionResponse(BaseModel):
    """Prediction result with its derived risk label."""

    success_probability: float
    confidence: float
    model_version: str
    risk_level: str
    recommendation: str

    @classmethod
    def from_result(cls, result: PredictionResult) -> "PredictionResponse":
        risk_level = classify_risk_level(result.success_probability)
        return cls(
            success_probability=result.success_probability,
            confidence=result.confidence,
            model_version=result.model_version,
            risk_level=risk_level,
            recommendation=_RECOMMENDATIONS[risk_level],
        )


class RetrainResponse(BaseModel):
    model_version: str
    status: str


class StatusResponse(BaseModel):
    model_version: str
    retraining: bool
    last_run: Optional[Dict[str, Any]] = None
