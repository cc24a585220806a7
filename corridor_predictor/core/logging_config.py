"""Root logger setup shared by the API process and the retrain script."""

import logging
from typing import Iterable


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers that flood DEBUG output with per-query or per-request lines.
NOISY_LOGGERS = ("asyncpg", "uvicorn.access", "multipart")


def resolve_log_level(debug: bool) -> int:
    return logging.DEBUG if debug else logging.INFO


def setup_logging(debug: bool = False, noisy_loggers: Iterable[str] = NOISY_LOGGERS) -> int:
    """Configure the root logger from the ``app.debug`` setting.

    A handler is installed only when the root logger has none (uvicorn or a
    test runner may have added one already), but the level is applied on
    every call so that settings loaded after import still take effect.
    Noisy third-party loggers are held at WARNING regardless of ``debug``.

    Returns:
        int: The root level that was applied.
    """
    level = resolve_log_level(debug)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
    return level
