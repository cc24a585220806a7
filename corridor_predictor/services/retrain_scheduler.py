"""Background scheduler that retrains the scoring model on a fixed interval."""

import asyncio
import logging
from typing import Optional

from .retraining_service import RetrainingService


logger = logging.getLogger(__name__)


class RetrainScheduler:
    """Periodically trigger retraining; cycle failures never stop the loop."""

    def __init__(
        self,
        retraining_service: RetrainingService,
        interval_sec: float,
        enabled: bool = True,
        run_on_startup: bool = False,
    ) -> None:
        self._retraining_service = retraining_service
        self._interval_sec = float(interval_sec)
        self._enabled = bool(enabled)
        self._run_on_startup = bool(run_on_startup)
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self.completed_cycles = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the retraining loop in a background task if enabled."""
        if not self._enabled:
            logger.info("Retrain scheduler disabled by retraining.enabled=false")
            return
        if self._interval_sec <= 0:
            logger.warning("Retrain scheduler interval must be positive interval_sec=%s", self._interval_sec)
            return
        if self.is_running:
            logger.info("Retrain scheduler already running.")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="retrain-scheduler")
        logger.info("Retrain scheduler started interval_sec=%.0f", self._interval_sec)

    async def stop(self) -> None:
        """Stop the background task.

        Cancellation reaches the retrain coroutine at its next await. A fit
        already running in a worker thread is not interrupted; it finishes
        in the background and its result is discarded without a swap, so the
        active model and version stay as they were.
        """
        if not self._task:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Retrain scheduler task cancelled.")
        except Exception:
            logger.exception("Unexpected error while stopping retrain scheduler.")
        finally:
            self._task = None

    async def _run_loop(self) -> None:
        """Main loop: wait one interval (or run immediately once), then retrain."""
        logger.info("Retrain scheduler loop running.")
        if self._run_on_startup:
            await self._run_once()

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_sec)
                break
            except asyncio.TimeoutError:
                pass
            await self._run_once()

    async def _run_once(self) -> None:
        try:
            version = await self._retraining_service.retrain()
            logger.info("Scheduled retrain finished version=%s", version)
        except Exception:
            logger.exception("Scheduled retrain failed; previous model remains active.")
        finally:
            self.completed_cycles += 1
