"""HTTP routes for the prediction service."""

from .prediction_routes import build_prediction_router

__all__ = ["build_prediction_router"]
