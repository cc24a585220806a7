"""Single-writer, multi-reader holder for the active scoring model."""

import logging

from .scoring_model import ScoringModel

logger = logging.getLogger(__name__)


class ModelHandle:
    """Publishes the active model through one reference swap.

    The version tag lives on the model itself, so replacing the reference
    replaces parameters and version together. Readers call ``current()`` once
    and keep that snapshot for the whole request.
    """

    def __init__(self, model: ScoringModel) -> None:
        self._model = model.freeze()

    @property
    def version(self) -> str:
        return self._model.version

    def current(self) -> ScoringModel:
        """Return the active model snapshot."""
        return self._model

    def swap(self, model: ScoringModel) -> ScoringModel:
        """Publish a new model and return the one it replaced."""
        previous = self._model
        self._model = model.freeze()
        logger.info("Active model swapped previous=%s current=%s", previous.version, model.version)
        return previous
