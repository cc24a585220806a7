"""Configuration loading utilities for YAML-based service settings."""

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml


logger = logging.getLogger(__name__)
_BASE_DIR = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _BASE_DIR / "config.yml"


@dataclass(frozen=True)
class AppSettings:
    """Service settings loaded from YAML configuration file."""

    app_name: str
    debug: bool
    host: str
    port: int
    database_enabled: bool
    database_dsn: Optional[str]
    database_min_pool_size: int
    database_max_pool_size: int
    database_command_timeout_sec: int
    model_version_major: int
    model_version_minor: int
    training_epochs: int
    training_progress_interval: int
    training_learning_rate: float
    training_weight_decay: float
    training_window_days: int
    training_max_records: int
    training_liquidity_placeholder: float
    training_success_rate_placeholder: float
    retraining_enabled: bool
    retraining_interval_sec: int
    retraining_run_on_startup: bool
    prediction_default_liquidity_usd: float
    prediction_default_success_rate: float

    @property
    def initial_model_version(self) -> str:
        """Version tag carried by the randomly initialized boot model."""
        return "{0}.{1}.0".format(self.model_version_major, self.model_version_minor)


def _to_bool(value: Any, default: bool = False) -> bool:
    """Convert value to bool with a default fallback."""
    try:
        if isinstance(value, bool):
            return value
        return value.strip().lower() in {"1", "true", "yes", "on"}
    except (AttributeError, ValueError):
        logger.warning("Invalid boolean value '%s'. Using default=%s", value, default)
        return default


def _to_int(value: Any, default: int) -> int:
    """Convert value to int with a default fallback."""
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_float(value: Any, default: float) -> float:
    """Convert value to float with a default fallback."""
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid float value '%s'. Using default=%s", value, default)
        return default


def _read_config(config_path: Path) -> dict:
    """Read and parse YAML configuration."""
    try:
        with config_path.open("r", encoding="utf-8") as config_file:
            config_data = yaml.safe_load(config_file) or {}
        logger.info("Configuration loaded from %s", config_path)
        return config_data
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Falling back to defaults.", config_path)
        return {}
    except Exception:
        logger.exception("Failed to load config file from %s", config_path)
        return {}


def load_settings(config_path: Optional[Union[str, Path]] = None) -> AppSettings:
    """Load and validate service settings from `config.yml`.

    Args:
        config_path: Optional override of the bundled configuration file.

    Returns:
        AppSettings: Immutable settings snapshot.
    """
    config = _read_config(Path(config_path) if config_path else _CONFIG_PATH)
    app_cfg = config.get("app") or {}
    database_cfg = config.get("database") or {}
    model_cfg = config.get("model") or {}
    training_cfg = config.get("training") or {}
    retraining_cfg = config.get("retraining") or {}
    prediction_cfg = config.get("prediction") or {}

    return AppSettings(
        app_name=str(app_cfg.get("name", "Corridor Success Predictor")),
        debug=_to_bool(app_cfg.get("debug", False), False),
        host=str(app_cfg.get("host", "127.0.0.1")),
        port=_to_int(app_cfg.get("port", 8000), 8000),
        database_enabled=_to_bool(database_cfg.get("enabled", False), False),
        database_dsn=database_cfg.get("dsn"),
        database_min_pool_size=_to_int(database_cfg.get("min_pool_size", 1), 1),
        database_max_pool_size=_to_int(database_cfg.get("max_pool_size", 10), 10),
        database_command_timeout_sec=_to_int(database_cfg.get("command_timeout_sec", 60), 60),
        model_version_major=_to_int(model_cfg.get("version_major", 1), 1),
        model_version_minor=_to_int(model_cfg.get("version_minor", 0), 0),
        training_epochs=_to_int(training_cfg.get("epochs", 100), 100),
        training_progress_interval=_to_int(training_cfg.get("progress_interval", 20), 20),
        training_learning_rate=_to_float(training_cfg.get("learning_rate", 0.001), 0.001),
        training_weight_decay=_to_float(training_cfg.get("weight_decay", 0.01), 0.01),
        training_window_days=_to_int(training_cfg.get("window_days", 90), 90),
        training_max_records=_to_int(training_cfg.get("max_records", 10000), 10000),
        training_liquidity_placeholder=_to_float(training_cfg.get("liquidity_placeholder", 0.5), 0.5),
        training_success_rate_placeholder=_to_float(training_cfg.get("success_rate_placeholder", 0.8), 0.8),
        retraining_enabled=_to_bool(retraining_cfg.get("enabled", True), True),
        retraining_interval_sec=_to_int(retraining_cfg.get("interval_sec", 604800), 604800),
        retraining_run_on_startup=_to_bool(retraining_cfg.get("run_on_startup", False), False),
        prediction_default_liquidity_usd=_to_float(prediction_cfg.get("default_liquidity_usd", 1000.0), 1000.0),
        prediction_default_success_rate=_to_float(prediction_cfg.get("default_success_rate", 0.8), 0.8),
    )
