"""Async tests for the data store, prediction, retraining and scheduler services."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import threading
from typing import List, Optional
import unittest
from unittest import mock

from corridor_predictor.ml.features import encode_features
from corridor_predictor.ml.model_handle import ModelHandle
from corridor_predictor.ml.scoring_model import ScoringModel
from corridor_predictor.ml.trainer import train_scoring_model
from corridor_predictor.models.exceptions import EncodingError, RetrainError
from corridor_predictor.models.records import CorridorRecord, PaymentRecord
from corridor_predictor.services.data_store import InMemoryPaymentDataStore
from corridor_predictor.services.prediction_service import PredictionService
from corridor_predictor.services.retrain_scheduler import RetrainScheduler
from corridor_predictor.services.retraining_service import RetrainingService


NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _recent_payments(count: int) -> List[PaymentRecord]:
    now = datetime.now(timezone.utc)
    return [
        PaymentRecord(
            id="pay_{0}".format(idx),
            amount=25.0 + idx,
            created_at=now - timedelta(days=idx),
            asset_code="USD",
            asset_issuer="issuerA",
        )
        for idx in range(count)
    ]


class _Clock:
    def __init__(self, start: float) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value


class InMemoryStoreTests(unittest.IsolatedAsyncioTestCase):
    """Query semantics mirror the SQL shapes."""

    async def test_recent_payments_window_order_and_limit(self) -> None:
        old = PaymentRecord(id="old", amount=1.0, created_at=datetime.now(timezone.utc) - timedelta(days=120))
        store = InMemoryPaymentDataStore(payments=list(reversed(_recent_payments(5))) + [old])
        rows = await store.fetch_recent_payments(window_days=90, limit=3)
        self.assertEqual([row.id for row in rows], ["pay_0", "pay_1", "pay_2"])

    async def test_success_rate_null_safe_division(self) -> None:
        store = InMemoryPaymentDataStore(
            corridors=[
                CorridorRecord(id="USD-a", successful_payments=3, total_attempts=4),
                CorridorRecord(id="USD-b", successful_payments=0, total_attempts=0),
                CorridorRecord(id="USD-c"),
            ]
        )
        self.assertAlmostEqual(await store.fetch_corridor_success_rate("USD-a"), 0.75)
        self.assertEqual(await store.fetch_corridor_success_rate("USD-b"), 0.0)
        self.assertEqual(await store.fetch_corridor_success_rate("USD-c"), 0.0)
        self.assertIsNone(await store.fetch_corridor_success_rate("missing"))
        self.assertIsNone(await store.fetch_corridor_liquidity("USD-c"))


class _GatedStore(InMemoryPaymentDataStore):
    """Blocks the liquidity lookup until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_corridor_liquidity(self, corridor_id: str) -> Optional[float]:
        self.entered.set()
        await self.release.wait()
        return await super().fetch_corridor_liquidity(corridor_id)


class PredictionServiceTests(unittest.IsolatedAsyncioTestCase):
    """Prediction never fails on missing corridor stats."""

    def setUp(self) -> None:
        self.handle = ModelHandle(ScoringModel(version="1.0.0"))
        self.store = InMemoryPaymentDataStore()
        self.service = PredictionService(self.handle, self.store)

    async def test_missing_corridor_uses_defaults(self) -> None:
        result = await self.service.predict_payment_success("USD-issuerA", 100.0, NOW)
        expected = self.handle.current().predict(encode_features("USD-issuerA", 100.0, NOW, 1000.0, 0.8))
        self.assertEqual(result, expected)
        self.assertLessEqual(self.store.lookup_count, 2)

    async def test_store_outage_uses_defaults(self) -> None:
        self.store.available = False
        result = await self.service.predict_payment_success("USD-issuerA", 100.0, NOW)
        self.assertGreaterEqual(result.success_probability, 0.0)
        self.assertLessEqual(result.success_probability, 1.0)
        self.assertEqual(result.model_version, "1.0.0")

    async def test_live_stats_feed_the_model(self) -> None:
        self.store.upsert_corridor(
            CorridorRecord(id="EUR-issuerB", liquidity_depth_usd=50000.0, successful_payments=9, total_attempts=10)
        )
        result = await self.service.predict_payment_success("EUR-issuerB", 20.0, NOW)
        expected = self.handle.current().predict(encode_features("EUR-issuerB", 20.0, NOW, 50000.0, 0.9))
        self.assertEqual(result, expected)

    async def test_drifted_success_counters_fall_back_to_default_rate(self) -> None:
        self.store.upsert_corridor(
            CorridorRecord(id="USD-issuerA", liquidity_depth_usd=5000.0, successful_payments=6, total_attempts=5)
        )
        result = await self.service.predict_payment_success("USD-issuerA", 100.0, NOW)
        expected = self.handle.current().predict(encode_features("USD-issuerA", 100.0, NOW, 5000.0, 0.8))
        self.assertEqual(result, expected)

    async def test_negative_liquidity_falls_back_to_default(self) -> None:
        self.store.upsert_corridor(
            CorridorRecord(id="USD-issuerA", liquidity_depth_usd=-250.0, successful_payments=9, total_attempts=10)
        )
        result = await self.service.predict_payment_success("USD-issuerA", 100.0, NOW)
        expected = self.handle.current().predict(encode_features("USD-issuerA", 100.0, NOW, 1000.0, 0.9))
        self.assertEqual(result, expected)

    async def test_negative_amount_surfaces_encoding_error(self) -> None:
        with self.assertRaises(EncodingError):
            await self.service.predict_payment_success("USD-issuerA", -1.0, NOW)

    async def test_in_flight_prediction_keeps_its_snapshot(self) -> None:
        store = _GatedStore()
        service = PredictionService(self.handle, store)
        task = asyncio.create_task(service.predict_payment_success("USD-issuerA", 10.0, NOW))
        await store.entered.wait()
        self.handle.swap(ScoringModel(version="1.0.1700000000"))
        store.release.set()
        result = await task
        self.assertEqual(result.model_version, "1.0.0")
        after = await service.predict_payment_success("USD-issuerA", 10.0, NOW)
        self.assertEqual(after.model_version, "1.0.1700000000")


class _ConcurrencyTrackingStore(InMemoryPaymentDataStore):
    def __init__(self, payments: List[PaymentRecord]) -> None:
        super().__init__(payments=payments)
        self.active = 0
        self.max_active = 0

    async def fetch_recent_payments(self, window_days: int, limit: int) -> List[PaymentRecord]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().fetch_recent_payments(window_days, limit)
        finally:
            self.active -= 1


class RetrainingServiceTests(unittest.IsolatedAsyncioTestCase):
    """Lifecycle: fetch, fit, stamp, swap, or leave the prior model alone."""

    def _service(self, store: InMemoryPaymentDataStore, clock: Optional[_Clock] = None) -> RetrainingService:
        self.handle = ModelHandle(ScoringModel(version="1.0.0"))
        return RetrainingService(
            model_handle=self.handle,
            data_store=store,
            epochs=2,
            clock=clock or _Clock(1700000000),
        )

    async def test_successful_retrain_swaps_model_and_version(self) -> None:
        service = self._service(InMemoryPaymentDataStore(payments=_recent_payments(6)))
        original = self.handle.current()
        version = await service.retrain()
        self.assertEqual(version, "1.0.1700000000")
        self.assertEqual(self.handle.version, version)
        self.assertIsNot(self.handle.current(), original)
        self.assertEqual(service.last_run["status"], "succeeded")
        self.assertEqual(service.last_run["summary"]["examples"], 6)

    async def test_refund_row_does_not_abort_retrain(self) -> None:
        refund = PaymentRecord(
            id="refund",
            amount=-5.0,
            created_at=datetime.now(timezone.utc) - timedelta(hours=1),
            asset_code="USD",
            asset_issuer="issuerA",
        )
        service = self._service(InMemoryPaymentDataStore(payments=_recent_payments(50) + [refund]))
        version = await service.retrain()
        self.assertEqual(version, "1.0.1700000000")
        self.assertEqual(self.handle.version, version)
        self.assertEqual(service.last_run["status"], "succeeded")
        self.assertEqual(service.last_run["summary"]["examples"], 50)

    async def test_empty_window_is_a_no_op(self) -> None:
        service = self._service(InMemoryPaymentDataStore())
        original = self.handle.current()
        version = await service.retrain()
        self.assertEqual(version, "1.0.0")
        self.assertIs(self.handle.current(), original)
        self.assertEqual(service.last_run["status"], "skipped")

    async def test_fetch_failure_keeps_prior_model(self) -> None:
        store = InMemoryPaymentDataStore(payments=_recent_payments(3))
        store.available = False
        service = self._service(store)
        original = self.handle.current()
        with self.assertRaises(RetrainError):
            await service.retrain()
        self.assertIs(self.handle.current(), original)
        self.assertEqual(service.last_run["status"], "failed")

    async def test_successive_retrains_increase_versions(self) -> None:
        clock = _Clock(1700000000)
        service = self._service(InMemoryPaymentDataStore(payments=_recent_payments(3)), clock)
        first = await service.retrain()
        clock.value += 1
        second = await service.retrain()
        third = await service.retrain()
        self.assertEqual(first, "1.0.1700000000")
        self.assertEqual(second, "1.0.1700000001")
        self.assertEqual(third, "1.0.1700000002")

    async def test_concurrent_retrains_are_serialized(self) -> None:
        store = _ConcurrencyTrackingStore(_recent_payments(3))
        service = self._service(store)
        versions = await asyncio.gather(service.retrain(), service.retrain())
        self.assertEqual(store.max_active, 1)
        self.assertEqual(len(set(versions)), 2)
        self.assertEqual(self.handle.version, max(versions))


class _StubRetrainingService:
    def __init__(self) -> None:
        self.calls = 0

    async def retrain(self) -> str:
        self.calls += 1
        if self.calls == 1:
            raise RetrainError("store down")
        return "1.0.{0}".format(self.calls)


class RetrainSchedulerTests(unittest.IsolatedAsyncioTestCase):
    """The loop keeps running after failed cycles and stops cleanly."""

    async def test_failed_cycle_does_not_stop_loop(self) -> None:
        stub = _StubRetrainingService()
        scheduler = RetrainScheduler(stub, interval_sec=0.02, enabled=True)  # type: ignore[arg-type]
        await scheduler.start()
        await asyncio.sleep(0.2)
        self.assertTrue(scheduler.is_running)
        await scheduler.stop()
        self.assertFalse(scheduler.is_running)
        self.assertGreaterEqual(stub.calls, 2)

    async def test_run_on_startup_triggers_immediately(self) -> None:
        stub = _StubRetrainingService()
        scheduler = RetrainScheduler(stub, interval_sec=3600, run_on_startup=True)  # type: ignore[arg-type]
        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()
        self.assertEqual(stub.calls, 1)

    async def test_stop_during_fit_leaves_model_unchanged(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def _blocking_fit(dataframe, **kwargs):
            started.set()
            release.wait(5)
            return train_scoring_model(dataframe, **kwargs)

        handle = ModelHandle(ScoringModel(version="1.0.0"))
        original = handle.current()
        service = RetrainingService(
            model_handle=handle,
            data_store=InMemoryPaymentDataStore(payments=_recent_payments(3)),
            epochs=1,
        )
        scheduler = RetrainScheduler(service, interval_sec=3600, run_on_startup=True)
        with mock.patch("corridor_predictor.services.retraining_service.train_scoring_model", _blocking_fit):
            await scheduler.start()
            self.assertTrue(await asyncio.to_thread(started.wait, 5))
            await scheduler.stop()
            release.set()
            await asyncio.sleep(0.05)
        self.assertFalse(scheduler.is_running)
        self.assertIs(handle.current(), original)
        self.assertEqual(handle.version, "1.0.0")
        self.assertFalse(service.is_running)

    async def test_disabled_scheduler_does_not_start(self) -> None:
        scheduler = RetrainScheduler(_StubRetrainingService(), interval_sec=1, enabled=False)  # type: ignore[arg-type]
        await scheduler.start()
        self.assertFalse(scheduler.is_running)
        await scheduler.stop()


if __name__ == "__main__":
    unittest.main()
