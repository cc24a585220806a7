"""Application entrypoint for the corridor success prediction service."""

import logging
from typing import Optional

from fastapi import FastAPI
import uvicorn

from corridor_predictor.api import build_prediction_router
from corridor_predictor.core import AppSettings, load_settings, setup_logging
from corridor_predictor.ml.model_handle import ModelHandle
from corridor_predictor.ml.scoring_model import ScoringModel
from corridor_predictor.services import (
    InMemoryPaymentDataStore,
    PaymentDataStore,
    PostgresPaymentDataStore,
    PredictionService,
    RetrainingService,
    RetrainScheduler,
)


logger = logging.getLogger(__name__)


def build_data_store(settings: AppSettings) -> PaymentDataStore:
    """Return the Postgres store when configured, otherwise an empty in-memory store."""
    if settings.database_enabled and settings.database_dsn:
        return PostgresPaymentDataStore(
            dsn=settings.database_dsn,
            min_size=settings.database_min_pool_size,
            max_size=settings.database_max_pool_size,
            command_timeout=settings.database_command_timeout_sec,
        )
    logger.warning("Database disabled; using in-memory payment store with no history.")
    return InMemoryPaymentDataStore()


def create_app(
    settings: Optional[AppSettings] = None,
    data_store: Optional[PaymentDataStore] = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance."""
    settings = settings or load_settings()
    setup_logging(debug=settings.debug)
    data_store = data_store or build_data_store(settings)
    app = FastAPI(title=settings.app_name, debug=settings.debug)

    # Boot model is randomly initialized until the first retrain completes.
    model_handle = ModelHandle(ScoringModel(version=settings.initial_model_version))
    prediction_service = PredictionService(
        model_handle=model_handle,
        data_store=data_store,
        default_liquidity_usd=settings.prediction_default_liquidity_usd,
        default_success_rate=settings.prediction_default_success_rate,
    )
    retraining_service = RetrainingService.from_settings(settings, model_handle, data_store)
    scheduler = RetrainScheduler(
        retraining_service=retraining_service,
        interval_sec=settings.retraining_interval_sec,
        enabled=settings.retraining_enabled,
        run_on_startup=settings.retraining_run_on_startup,
    )

    app.state.model_handle = model_handle
    app.state.prediction_service = prediction_service
    app.state.retraining_service = retraining_service
    app.state.retrain_scheduler = scheduler
    app.include_router(build_prediction_router(prediction_service, retraining_service))

    @app.get("/health", summary="Health check")
    def health() -> dict:
        return {"status": "ok", "model_version": model_handle.version}

    @app.on_event("startup")
    async def _startup_background_services() -> None:
        """Connect the store and start the retrain scheduler."""
        try:
            if isinstance(data_store, PostgresPaymentDataStore):
                await data_store.connect()
            await scheduler.start()
        except Exception:
            logger.exception("Failed to start background services during startup.")

    @app.on_event("shutdown")
    async def _shutdown_background_services() -> None:
        """Stop the scheduler and release the store."""
        try:
            await scheduler.stop()
            if isinstance(data_store, PostgresPaymentDataStore):
                await data_store.close()
        except Exception:
            logger.exception("Failed to stop background services during shutdown.")

    logger.info("Application initialized: %s model_version=%s", settings.app_name, model_handle.version)
    return app


def run() -> None:
    """Start the ASGI server for local development."""
    settings = load_settings()
    setup_logging(debug=settings.debug)
    try:
        uvicorn.run(
            "corridor_predictor.main:create_app",
            factory=True,
            host=settings.host,
            port=settings.port,
            reload=settings.debug,
        )
    except Exception:
        logger.exception("Failed to start uvicorn server.")
        raise


if __name__ == "__main__":
    run()
