"""On-demand payment success scoring."""

from datetime import datetime
import logging
import math
from typing import Optional

from corridor_predictor.ml.features import DEFAULT_LIQUIDITY_USD, DEFAULT_SUCCESS_RATE, encode_features
from corridor_predictor.ml.model_handle import ModelHandle
from corridor_predictor.ml.scoring_model import PredictionResult
from corridor_predictor.models.exceptions import LookupFailure

from .data_store import PaymentDataStore


logger = logging.getLogger(__name__)


class PredictionService:
    """Scores proposed payments against the active model."""

    def __init__(
        self,
        model_handle: ModelHandle,
        data_store: PaymentDataStore,
        default_liquidity_usd: float = DEFAULT_LIQUIDITY_USD,
        default_success_rate: float = DEFAULT_SUCCESS_RATE,
    ) -> None:
        self._model_handle = model_handle
        self._data_store = data_store
        self._default_liquidity_usd = float(default_liquidity_usd)
        self._default_success_rate = float(default_success_rate)

    @property
    def model_version(self) -> str:
        return self._model_handle.version

    async def predict_payment_success(
        self,
        corridor: str,
        amount_usd: float,
        timestamp: datetime,
    ) -> PredictionResult:
        """Predict the success probability of a payment.

        Corridor stats that cannot be fetched, or that come back out of
        range, fall back to defaults, so this only fails on invalid numeric input or a non-finite forward pass.

        Args:
            corridor: Corridor id ``"ASSET_CODE-ASSET_ISSUER"``.
            amount_usd: Payment amount in USD.
            timestamp: Payment time (UTC).

        Returns:
            PredictionResult: Probability, heuristic confidence and model version.
        """
        model = self._model_handle.current()
        try:
            liquidity = await self._lookup_liquidity(corridor)
            success_rate = await self._lookup_success_rate(corridor)
            features = encode_features(
                corridor=corridor,
                amount_usd=amount_usd,
                timestamp=timestamp,
                liquidity_usd=liquidity,
                recent_success_rate=success_rate,
                default_liquidity_usd=self._default_liquidity_usd,
                default_success_rate=self._default_success_rate,
            )
            return model.predict(features)
        except Exception:
            logger.exception(
                "Payment success prediction failed corridor=%s amount_usd=%s version=%s",
                corridor,
                amount_usd,
                model.version,
            )
            raise

    async def _lookup_liquidity(self, corridor: str) -> Optional[float]:
        try:
            liquidity = await self._data_store.fetch_corridor_liquidity(corridor)
        except LookupFailure:
            logger.warning("Corridor liquidity unavailable corridor=%s. Using default.", corridor)
            return None
        if liquidity is not None and (not math.isfinite(liquidity) or liquidity < 0):
            logger.warning("Corridor liquidity out of range corridor=%s value=%s. Using default.", corridor, liquidity)
            return None
        return liquidity

    async def _lookup_success_rate(self, corridor: str) -> Optional[float]:
        try:
            rate = await self._data_store.fetch_corridor_success_rate(corridor)
        except LookupFailure:
            logger.warning("Corridor success rate unavailable corridor=%s. Using default.", corridor)
            return None
        # Stored counters can drift (successful > total after a replay).
        if rate is not None and (not math.isfinite(rate) or not 0.0 <= rate <= 1.0):
            logger.warning("Corridor success rate out of range corridor=%s value=%s. Using default.", corridor, rate)
            return None
        return rate
