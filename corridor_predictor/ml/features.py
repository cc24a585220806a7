"""Deterministic feature encoding for corridor payment scoring.

Model inputs are six bounded scalars derived from raw payment and corridor
attributes:

    corridor_identity_hash  stable hash of (asset code, asset issuer) in [0, 1)
    amount_magnitude        max(log10(amount_usd), 0)
    hour_of_day             UTC hour / 24
    day_of_week             UTC weekday / 7, Monday = 0
    liquidity_depth         max(log10(liquidity_usd), 0)
    recent_success_rate     corridor successful / total attempts, in [0, 1]

Bulk training encoding does not reconstruct point-in-time corridor stats;
liquidity and success rate are fixed placeholders for every historical row.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from corridor_predictor.models.exceptions import EncodingError
from corridor_predictor.models.records import PaymentRecord

# Ordered list, must match the model's input column order exactly.
FEATURE_NAMES: list[str] = [
    "corridor_identity_hash",
    "amount_magnitude",
    "hour_of_day",
    "day_of_week",
    "liquidity_depth",
    "recent_success_rate",
]
OUTCOME_COLUMN = "outcome"

HASH_BUCKETS = 1000
DEFAULT_LIQUIDITY_USD = 1000.0
DEFAULT_SUCCESS_RATE = 0.8
TRAINING_LIQUIDITY_PLACEHOLDER = 0.5
TRAINING_SUCCESS_RATE_PLACEHOLDER = 0.8


@dataclass(frozen=True)
class FeatureVector:
    """Encoded feature vector for a single payment."""

    corridor_identity_hash: float
    amount_magnitude: float
    hour_of_day: float
    day_of_week: float
    liquidity_depth: float
    recent_success_rate: float

    def to_dict(self) -> Dict[str, float]:
        """Return an ordered dictionary matching ``FEATURE_NAMES``."""
        return {name: getattr(self, name) for name in FEATURE_NAMES}

    def to_list(self) -> list[float]:
        """Return feature values in canonical column order."""
        return [getattr(self, name) for name in FEATURE_NAMES]


@dataclass(frozen=True)
class TrainingExample:
    """A feature vector paired with its observed outcome (1.0 = success)."""

    features: FeatureVector
    outcome: float


def split_corridor(corridor: str) -> Tuple[str, str]:
    """Split ``"CODE-ISSUER"`` into its parts; missing parts become ``""``."""
    parts = corridor.split("-")
    code = parts[0] if len(parts) > 0 else ""
    issuer = parts[1] if len(parts) > 1 else ""
    return code, issuer


def hash_corridor(asset_code: Optional[str], asset_issuer: Optional[str]) -> float:
    """Map an asset pair to a stable bucket in ``[0, 1)``.

    SHA-256 keeps the value identical across processes; the builtin ``hash``
    is salted per interpreter run.
    """
    payload = "{0}\x1f{1}".format(asset_code or "", asset_issuer or "").encode("utf-8")
    digest = hashlib.sha256(payload).digest()
    bucket = int.from_bytes(digest[:8], "big") % HASH_BUCKETS
    return bucket / float(HASH_BUCKETS)


def _log_scale(value: float, field: str) -> float:
    """Return ``max(log10(value), 0)``; values below 1 floor to 0."""
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise EncodingError("{0} is not numeric: {1!r}".format(field, value)) from exc
    if not math.isfinite(value):
        raise EncodingError("{0} must be finite, got {1}".format(field, value))
    if value < 0:
        raise EncodingError("{0} must be non-negative, got {1}".format(field, value))
    if value < 1.0:
        return 0.0
    return math.log10(value)


def scale_amount(amount_usd: float) -> float:
    """Log-scale a USD amount; sub-dollar amounts floor to 0."""
    return _log_scale(amount_usd, "amount_usd")


def _as_utc(timestamp: datetime) -> datetime:
    """Treat naive timestamps as UTC and convert aware ones."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def encode_time(timestamp: datetime) -> Tuple[float, float]:
    """Return ``(hour_of_day, day_of_week)`` scaled to ``[0, 1)``."""
    utc = _as_utc(timestamp)
    return utc.hour / 24.0, utc.weekday() / 7.0


def _validate_success_rate(rate: float) -> float:
    try:
        rate = float(rate)
    except (TypeError, ValueError) as exc:
        raise EncodingError("recent_success_rate is not numeric: {0!r}".format(rate)) from exc
    if not math.isfinite(rate) or rate < 0.0 or rate > 1.0:
        raise EncodingError("recent_success_rate must be within [0, 1], got {0}".format(rate))
    return rate


def encode_features(
    corridor: str,
    amount_usd: float,
    timestamp: datetime,
    liquidity_usd: Optional[float] = None,
    recent_success_rate: Optional[float] = None,
    default_liquidity_usd: float = DEFAULT_LIQUIDITY_USD,
    default_success_rate: float = DEFAULT_SUCCESS_RATE,
) -> FeatureVector:
    """Build the feature vector for a proposed payment.

    Parameters
    ----------
    corridor:
        Corridor id of the form ``"ASSET_CODE-ASSET_ISSUER"``.
    amount_usd:
        Payment amount in USD.
    timestamp:
        Payment time; naive values are read as UTC.
    liquidity_usd, recent_success_rate:
        Live corridor stats. ``None`` means the stat was unavailable and the
        default applies. Liquidity below 1 USD (including 0) floors to a
        depth of 0 like amounts do, instead of being passed to ``log10``.

    Returns
    -------
    FeatureVector

    Raises
    ------
    EncodingError
        If a numeric input is negative, NaN or infinite.
    """
    code, issuer = split_corridor(corridor)
    hour_of_day, day_of_week = encode_time(timestamp)
    liquidity = default_liquidity_usd if liquidity_usd is None else liquidity_usd
    success_rate = default_success_rate if recent_success_rate is None else recent_success_rate

    return FeatureVector(
        corridor_identity_hash=hash_corridor(code, issuer),
        amount_magnitude=scale_amount(amount_usd),
        hour_of_day=hour_of_day,
        day_of_week=day_of_week,
        liquidity_depth=_log_scale(liquidity, "liquidity_usd"),
        recent_success_rate=_validate_success_rate(success_rate),
    )


def encode_training_record(
    record: PaymentRecord,
    liquidity_placeholder: float = TRAINING_LIQUIDITY_PLACEHOLDER,
    success_rate_placeholder: float = TRAINING_SUCCESS_RATE_PLACEHOLDER,
) -> TrainingExample:
    """Encode a historical payment row as a training example.

    The placeholders are already feature-space values and are not rescaled.
    """
    hour_of_day, day_of_week = encode_time(record.created_at)
    features = FeatureVector(
        corridor_identity_hash=hash_corridor(record.asset_code, record.asset_issuer),
        amount_magnitude=scale_amount(record.amount),
        hour_of_day=hour_of_day,
        day_of_week=day_of_week,
        liquidity_depth=float(liquidity_placeholder),
        recent_success_rate=float(success_rate_placeholder),
    )
    return TrainingExample(features=features, outcome=1.0 if record.succeeded else 0.0)
