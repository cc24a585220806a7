"""Training procedure for the payment success scoring model."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import numpy as np
import pandas as pd
import torch
import torch.nn as nn
from sklearn.metrics import mean_squared_error

from corridor_predictor.models.exceptions import EmptyTrainingSetError, NumericError

from .features import FEATURE_NAMES, OUTCOME_COLUMN
from .scoring_model import ScoringModel


logger = logging.getLogger(__name__)

DEFAULT_EPOCHS = 100
DEFAULT_PROGRESS_INTERVAL = 20
DEFAULT_LEARNING_RATE = 1e-3
DEFAULT_WEIGHT_DECAY = 1e-2
UNVERSIONED = "unversioned"


@dataclass
class TrainingResult:
    """Fitted model plus the run summary."""

    model: ScoringModel
    summary: Dict[str, Any]


def _to_tensors(dataframe: pd.DataFrame) -> Tuple[torch.Tensor, torch.Tensor]:
    features = torch.tensor(dataframe[FEATURE_NAMES].to_numpy(dtype=np.float32))
    targets = torch.tensor(dataframe[OUTCOME_COLUMN].to_numpy(dtype=np.float32)).unsqueeze(1)
    return features, targets


def train_scoring_model(
    dataframe: pd.DataFrame,
    epochs: int = DEFAULT_EPOCHS,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    weight_decay: float = DEFAULT_WEIGHT_DECAY,
) -> TrainingResult:
    """Fit a fresh scoring model with per-example AdamW steps on an MSE objective.

    Every epoch visits the examples in frame order and takes one optimizer
    step per example. The epoch mean loss is logged every
    ``progress_interval`` epochs; there is no early stopping.

    Args:
        dataframe: Frame with ``FEATURE_NAMES`` columns and ``outcome``.
        epochs: Number of full passes over the data.
        progress_interval: Epoch spacing of loss log lines.
        learning_rate: AdamW learning rate.
        weight_decay: AdamW decoupled weight decay.

    Returns:
        TrainingResult: Frozen, unversioned model and run summary.

    Raises:
        ValueError: If required columns are missing.
        EmptyTrainingSetError: If the frame has no rows.
        NumericError: If a loss becomes non-finite.
    """
    required_columns = set(FEATURE_NAMES + [OUTCOME_COLUMN])
    missing = required_columns.difference(dataframe.columns)
    if missing:
        raise ValueError("Missing required columns: {0}".format(sorted(missing)))

    example_count = len(dataframe)
    if example_count == 0:
        raise EmptyTrainingSetError("Training requires at least one example.")

    features, targets = _to_tensors(dataframe)
    model = ScoringModel(version=UNVERSIONED)
    model.train()
    optimizer = torch.optim.AdamW(model.parameters(), lr=learning_rate, weight_decay=weight_decay)
    criterion = nn.MSELoss()
    interval = max(int(progress_interval), 1)
    loss_history: Dict[int, float] = {}

    for epoch in range(epochs):
        total_loss = 0.0
        for idx in range(example_count):
            optimizer.zero_grad()
            prediction = model(features[idx : idx + 1])
            loss = criterion(prediction, targets[idx : idx + 1])
            loss_value = float(loss.item())
            if not math.isfinite(loss_value):
                raise NumericError("Non-finite loss at epoch={0} example={1}".format(epoch, idx))
            loss.backward()
            optimizer.step()
            total_loss += loss_value

        mean_loss = total_loss / example_count
        if epoch % interval == 0:
            loss_history[epoch] = mean_loss
            logger.info("Epoch %d: Loss = %.4f", epoch, mean_loss)

    model.freeze()
    with torch.no_grad():
        fitted = model(features).squeeze(1).numpy()
    if not np.all(np.isfinite(fitted)):
        raise NumericError("Fitted model produced non-finite outputs.")

    observed: List[float] = targets.squeeze(1).tolist()
    summary: Dict[str, Any] = {
        "examples": example_count,
        "epochs": int(epochs),
        "loss_history": loss_history,
        "fit_mse": float(mean_squared_error(observed, fitted)),
        "positive_rate": float(np.mean(observed)),
    }
    logger.info(
        "Training complete examples=%d epochs=%d fit_mse=%.4f positive_rate=%.4f",
        example_count,
        epochs,
        summary["fit_mse"],
        summary["positive_rate"],
    )
    return TrainingResult(model=model, summary=summary)
