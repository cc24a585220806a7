"""Model version tags of the form ``<major>.<minor>.<unix_timestamp>``."""

import time
from typing import Optional


def _timestamp_component(version: Optional[str]) -> int:
    """Return the trailing timestamp of a version tag, or 0 when absent."""
    if not version:
        return 0
    try:
        return int(version.rsplit(".", 1)[-1])
    except ValueError:
        return 0


def next_version(
    major: int,
    minor: int,
    now: Optional[float] = None,
    previous: Optional[str] = None,
) -> str:
    """Stamp a version from the retraining time.

    The timestamp component never repeats or goes backwards relative to
    ``previous``, even when two retrains land within the same second.
    """
    timestamp = int(time.time() if now is None else now)
    timestamp = max(timestamp, _timestamp_component(previous) + 1)
    return "{0}.{1}.{2}".format(major, minor, timestamp)
