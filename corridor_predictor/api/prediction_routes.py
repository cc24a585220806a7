"""Payment success prediction and retraining routes."""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, HTTPException, status

from corridor_predictor.models.exceptions import EncodingError, NumericError, RetrainError
from corridor_predictor.services.prediction_service import PredictionService
from corridor_predictor.services.retraining_service import RetrainingService

from .schemas import PredictRequest, PredictionResponse, RetrainResponse, StatusResponse


logger = logging.getLogger(__name__)


def build_prediction_router(
    prediction_service: PredictionService,
    retraining_service: RetrainingService,
) -> APIRouter:
    """Create the `/api/ml` router bound to the given services."""
    router = APIRouter(prefix="/api/ml", tags=["ml"])

    @router.post("/predict", summary="Predict payment success probability", response_model=PredictionResponse)
    async def predict_payment(payload: PredictRequest) -> PredictionResponse:
        timestamp = payload.timestamp or datetime.now(timezone.utc)
        try:
            result = await prediction_service.predict_payment_success(
                corridor=payload.corridor,
                amount_usd=payload.amount_usd,
                timestamp=timestamp,
            )
        except EncodingError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        except NumericError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
        return PredictionResponse.from_result(result)

    @router.post("/retrain", summary="Retrain the scoring model now", response_model=RetrainResponse)
    async def retrain_model() -> RetrainResponse:
        try:
            version = await retraining_service.retrain()
        except RetrainError as exc:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
        except Exception as exc:
            logger.exception("Manual retrain failed.")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
        last_run = retraining_service.last_run or {}
        return RetrainResponse(model_version=version, status=str(last_run.get("status", "succeeded")))

    @router.get("/status", summary="Active model version and last retrain", response_model=StatusResponse)
    def model_status() -> StatusResponse:
        return StatusResponse(**retraining_service.get_runtime_status())

    return router
