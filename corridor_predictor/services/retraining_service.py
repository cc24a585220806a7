"""Retraining lifecycle: fetch history, fit, version and publish a new model."""

import asyncio
from datetime import datetime, timezone
import logging
import time
from typing import Any, Callable, Dict, Optional

from corridor_predictor.core.config import AppSettings
from corridor_predictor.ml.features import TRAINING_LIQUIDITY_PLACEHOLDER, TRAINING_SUCCESS_RATE_PLACEHOLDER
from corridor_predictor.ml.model_handle import ModelHandle
from corridor_predictor.ml.trainer import (
    DEFAULT_EPOCHS,
    DEFAULT_LEARNING_RATE,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_WEIGHT_DECAY,
    train_scoring_model,
)
from corridor_predictor.ml.training_data import build_training_frame
from corridor_predictor.ml.versioning import next_version
from corridor_predictor.models.exceptions import LookupFailure, RetrainError

from .data_store import PaymentDataStore


logger = logging.getLogger(__name__)


class RetrainingService:
    """Runs one retrain at a time and swaps the active model on success."""

    def __init__(
        self,
        model_handle: ModelHandle,
        data_store: PaymentDataStore,
        version_major: int = 1,
        version_minor: int = 0,
        window_days: int = 90,
        max_records: int = 10000,
        epochs: int = DEFAULT_EPOCHS,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        weight_decay: float = DEFAULT_WEIGHT_DECAY,
        liquidity_placeholder: float = TRAINING_LIQUIDITY_PLACEHOLDER,
        success_rate_placeholder: float = TRAINING_SUCCESS_RATE_PLACEHOLDER,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._model_handle = model_handle
        self._data_store = data_store
        self._version_major = int(version_major)
        self._version_minor = int(version_minor)
        self._window_days = int(window_days)
        self._max_records = int(max_records)
        self._epochs = int(epochs)
        self._progress_interval = int(progress_interval)
        self._learning_rate = float(learning_rate)
        self._weight_decay = float(weight_decay)
        self._liquidity_placeholder = float(liquidity_placeholder)
        self._success_rate_placeholder = float(success_rate_placeholder)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_run: Optional[Dict[str, Any]] = None

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        model_handle: ModelHandle,
        data_store: PaymentDataStore,
    ) -> "RetrainingService":
        """Build the service from loaded application settings."""
        return cls(
            model_handle=model_handle,
            data_store=data_store,
            version_major=settings.model_version_major,
            version_minor=settings.model_version_minor,
            window_days=settings.training_window_days,
            max_records=settings.training_max_records,
            epochs=settings.training_epochs,
            progress_interval=settings.training_progress_interval,
            learning_rate=settings.training_learning_rate,
            weight_decay=settings.training_weight_decay,
            liquidity_placeholder=settings.training_liquidity_placeholder,
            success_rate_placeholder=settings.training_success_rate_placeholder,
        )

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def last_run(self) -> Optional[Dict[str, Any]]:
        """Outcome of the most recent retrain, if any."""
        return dict(self._last_run) if self._last_run is not None else None

    def get_runtime_status(self) -> Dict[str, Any]:
        """Return the active version and the last retrain outcome."""
        return {
            "model_version": self._model_handle.version,
            "retraining": self.is_running,
            "last_run": self.last_run,
        }

    async def retrain(self) -> str:
        """Run a full retrain and return the version now serving.

        Concurrent calls queue behind the running one. An empty history
        window is a no-op that keeps the current model and version.

        Raises:
            RetrainError: If the history fetch fails; the prior model keeps serving.
            NumericError: If training diverges; the prior model keeps serving.
        """
        async with self._lock:
            started_at = datetime.now(timezone.utc)
            logger.info("Starting model retraining current_version=%s", self._model_handle.version)
            try:
                records = await self._data_store.fetch_recent_payments(
                    window_days=self._window_days,
                    limit=self._max_records,
                )
            except LookupFailure as exc:
                self._record("failed", started_at, error=str(exc))
                logger.exception("Retraining aborted; training data fetch failed.")
                raise RetrainError("Training data fetch failed: {0}".format(exc)) from exc

            try:
                dataframe = build_training_frame(
                    records,
                    liquidity_placeholder=self._liquidity_placeholder,
                    success_rate_placeholder=self._success_rate_placeholder,
                )
                if dataframe.empty:
                    logger.warning(
                        "No payment records in the last %d days. Keeping model version=%s",
                        self._window_days,
                        self._model_handle.version,
                    )
                    self._record("skipped", started_at)
                    return self._model_handle.version

                result = await asyncio.to_thread(
                    train_scoring_model,
                    dataframe,
                    epochs=self._epochs,
                    progress_interval=self._progress_interval,
                    learning_rate=self._learning_rate,
                    weight_decay=self._weight_decay,
                )
                version = next_version(
                    self._version_major,
                    self._version_minor,
                    now=self._clock(),
                    previous=self._model_handle.version,
                )
                self._model_handle.swap(result.model.with_version(version))
            except Exception as exc:
                self._record("failed", started_at, error=str(exc))
                logger.exception("Retraining failed; keeping model version=%s", self._model_handle.version)
                raise

            self._record("succeeded", started_at, summary=result.summary)
            logger.info("Model retrained successfully. Version: %s", version)
            return version

    def _record(
        self,
        status: str,
        started_at: datetime,
        summary: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        self._last_run = {
            "status": status,
            "started_at": started_at.isoformat(),
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "model_version": self._model_handle.version,
            "summary": summary,
            "error": error,
        }
