"""Dry-run a single retraining cycle against the configured payment store.

The fitted model lives only in this process and is discarded on exit; a
running API server keeps serving its own model. Use this to check that the
history window loads, encodes and trains, and to inspect the loss summary.
"""

import argparse
import asyncio
from dataclasses import replace
import logging

from corridor_predictor.core import load_settings, setup_logging
from corridor_predictor.main import build_data_store
from corridor_predictor.ml.model_handle import ModelHandle
from corridor_predictor.ml.scoring_model import ScoringModel
from corridor_predictor.services.data_store import PostgresPaymentDataStore
from corridor_predictor.services.retraining_service import RetrainingService


logger = logging.getLogger(__name__)


async def _retrain(args: argparse.Namespace) -> str:
    settings = load_settings(args.config or None)
    setup_logging(debug=settings.debug)
    if args.epochs is not None:
        settings = replace(settings, training_epochs=args.epochs)
    if args.window_days is not None:
        settings = replace(settings, training_window_days=args.window_days)

    data_store = build_data_store(settings)
    if isinstance(data_store, PostgresPaymentDataStore):
        await data_store.connect()
    try:
        service = RetrainingService.from_settings(
            settings,
            ModelHandle(ScoringModel(version=settings.initial_model_version)),
            data_store,
        )
        version = await service.retrain()
        logger.info("Dry-run retrain finished (model not persisted) version=%s last_run=%s", version, service.last_run)
        return version
    finally:
        if isinstance(data_store, PostgresPaymentDataStore):
            await data_store.close()


def main() -> None:
    """Retrain once, log the resulting version and summary, then discard the model."""
    parser = argparse.ArgumentParser(
        description=(
            "Dry-run one retraining cycle of the corridor payment success model. "
            "The trained model is not saved and a running server is not updated; "
            "use POST /api/ml/retrain to retrain the live model."
        )
    )
    parser.add_argument("--config", type=str, default="", help="Optional config.yml path.")
    parser.add_argument("--epochs", type=int, default=None, help="Override training epochs.")
    parser.add_argument("--window-days", type=int, default=None, help="Override history window in days.")
    args = parser.parse_args()
    asyncio.run(_retrain(args))


if __name__ == "__main__":
    main()
