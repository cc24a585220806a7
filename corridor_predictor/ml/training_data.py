"""Build training dataframes from historical payment records."""

import logging
from typing import Iterable, List

import pandas as pd

from corridor_predictor.models.exceptions import EncodingError
from corridor_predictor.models.records import PaymentRecord

from .features import (
    FEATURE_NAMES,
    OUTCOME_COLUMN,
    TRAINING_LIQUIDITY_PLACEHOLDER,
    TRAINING_SUCCESS_RATE_PLACEHOLDER,
    TrainingExample,
    encode_training_record,
)


logger = logging.getLogger(__name__)


def examples_to_frame(examples: Iterable[TrainingExample]) -> pd.DataFrame:
    """Flatten training examples into feature columns plus ``outcome``."""
    rows = []
    for example in examples:
        row = example.features.to_dict()
        row[OUTCOME_COLUMN] = float(example.outcome)
        rows.append(row)
    return pd.DataFrame(rows, columns=FEATURE_NAMES + [OUTCOME_COLUMN])


def build_training_frame(
    records: Iterable[PaymentRecord],
    liquidity_placeholder: float = TRAINING_LIQUIDITY_PLACEHOLDER,
    success_rate_placeholder: float = TRAINING_SUCCESS_RATE_PLACEHOLDER,
) -> pd.DataFrame:
    """Encode payment records in their given order.

    Rows whose amount cannot be encoded (negative refunds, NaN) are skipped
    and counted rather than aborting the whole run.

    Args:
        records: Historical payments, newest first as served by the store.
        liquidity_placeholder: Feature-space liquidity used for every row.
        success_rate_placeholder: Success rate used for every row.

    Returns:
        pd.DataFrame: One row per record; empty when no records were given.
    """
    examples: List[TrainingExample] = []
    skipped = 0
    for record in records:
        try:
            examples.append(
                encode_training_record(
                    record,
                    liquidity_placeholder=liquidity_placeholder,
                    success_rate_placeholder=success_rate_placeholder,
                )
            )
        except EncodingError:
            skipped += 1
    if skipped:
        logger.warning("Skipped unencodable payment records skipped=%d kept=%d", skipped, len(examples))
    dataframe = examples_to_frame(examples)
    if len(dataframe):
        # Only completed payments are retained upstream, so this is close to 1.0.
        logger.info(
            "Built training frame rows=%d positive_rate=%.4f",
            len(dataframe),
            float(dataframe[OUTCOME_COLUMN].mean()),
        )
    return dataframe
