"""Payment history and corridor statistics access."""

from abc import ABC, abstractmethod
import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Iterable, List, Optional

import asyncpg
from pydantic import ValidationError

from corridor_predictor.models.exceptions import LookupFailure
from corridor_predictor.models.records import CorridorRecord, PaymentRecord


logger = logging.getLogger(__name__)

# asyncpg raises InterfaceError for pool/connection state and asyncio.TimeoutError
# for command_timeout; neither derives from PostgresError.
_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError)

RECENT_PAYMENTS_SQL = """
SELECT
    p.id::text AS id,
    p.amount::float AS amount,
    p.created_at,
    p.asset_code,
    p.asset_issuer
FROM payment_records p
WHERE p.created_at >= NOW() - ($1::int * INTERVAL '1 day')
ORDER BY p.created_at DESC
LIMIT $2
"""

CORRIDOR_LIQUIDITY_SQL = """
SELECT liquidity_depth_usd::float FROM corridor_records WHERE id = $1
"""

CORRIDOR_SUCCESS_RATE_SQL = """
SELECT
    COALESCE(
        successful_payments::float / NULLIF(total_attempts, 0),
        0.0
    ) AS success_rate
FROM corridor_records
WHERE id = $1
"""


class PaymentDataStore(ABC):
    """Read-only query surface over payment and corridor history."""

    @abstractmethod
    async def fetch_recent_payments(self, window_days: int, limit: int) -> List[PaymentRecord]:
        """Return payments from the last `window_days`, newest first, capped at `limit`."""

    @abstractmethod
    async def fetch_corridor_liquidity(self, corridor_id: str) -> Optional[float]:
        """Return corridor liquidity in USD, or None when unknown."""

    @abstractmethod
    async def fetch_corridor_success_rate(self, corridor_id: str) -> Optional[float]:
        """Return successful/total for the corridor, or None when the corridor is unknown."""


class PostgresPaymentDataStore(PaymentDataStore):
    """asyncpg-backed store over `payment_records` and `corridor_records`."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: int = 60,
    ) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
            logger.info("Payment data store connected pool_max=%d", self._max_size)
        except Exception:
            logger.exception("Payment data store connection failed.")
            raise

    async def close(self) -> None:
        """Close the pool gracefully."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Payment data store connection closed.")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise LookupFailure("Payment data store is not connected.")
        return self._pool

    async def fetch_recent_payments(self, window_days: int, limit: int) -> List[PaymentRecord]:
        pool = self._require_pool()
        try:
            rows = await pool.fetch(RECENT_PAYMENTS_SQL, int(window_days), int(limit))
        except _DRIVER_ERRORS as exc:
            logger.exception("Recent payments query failed window_days=%s limit=%s", window_days, limit)
            raise LookupFailure("Recent payments query failed: {0}".format(exc)) from exc
        return _to_payment_records(rows)

    async def fetch_corridor_liquidity(self, corridor_id: str) -> Optional[float]:
        pool = self._require_pool()
        try:
            value = await pool.fetchval(CORRIDOR_LIQUIDITY_SQL, corridor_id)
        except _DRIVER_ERRORS as exc:
            raise LookupFailure("Corridor liquidity query failed: {0}".format(exc)) from exc
        return None if value is None else float(value)

    async def fetch_corridor_success_rate(self, corridor_id: str) -> Optional[float]:
        pool = self._require_pool()
        try:
            value = await pool.fetchval(CORRIDOR_SUCCESS_RATE_SQL, corridor_id)
        except _DRIVER_ERRORS as exc:
            raise LookupFailure("Corridor success rate query failed: {0}".format(exc)) from exc
        return None if value is None else float(value)


class InMemoryPaymentDataStore(PaymentDataStore):
    """In-process store with the same query semantics as the Postgres store.

    Used when no database is configured. Setting `available` to False makes
    every query raise `LookupFailure`.
    """

    def __init__(
        self,
        payments: Optional[Iterable[PaymentRecord]] = None,
        corridors: Optional[Iterable[CorridorRecord]] = None,
    ) -> None:
        self._payments: List[PaymentRecord] = list(payments or [])
        self._corridors: Dict[str, CorridorRecord] = {item.id: item for item in corridors or []}
        self.available = True
        self.lookup_count = 0

    def add_payment(self, payment: PaymentRecord) -> None:
        self._payments.append(payment)

    def upsert_corridor(self, corridor: CorridorRecord) -> None:
        self._corridors[corridor.id] = corridor

    def _check_available(self, operation: str) -> None:
        self.lookup_count += 1
        if not self.available:
            raise LookupFailure("In-memory store unavailable operation={0}".format(operation))

    async def fetch_recent_payments(self, window_days: int, limit: int) -> List[PaymentRecord]:
        self._check_available("fetch_recent_payments")
        cutoff = datetime.now(timezone.utc) - timedelta(days=int(window_days))
        recent = [item for item in self._payments if _as_aware(item.created_at) >= cutoff]
        recent.sort(key=lambda item: _as_aware(item.created_at), reverse=True)
        return recent[: int(limit)]

    async def fetch_corridor_liquidity(self, corridor_id: str) -> Optional[float]:
        self._check_available("fetch_corridor_liquidity")
        corridor = self._corridors.get(corridor_id)
        if corridor is None or corridor.liquidity_depth_usd is None:
            return None
        return float(corridor.liquidity_depth_usd)

    async def fetch_corridor_success_rate(self, corridor_id: str) -> Optional[float]:
        self._check_available("fetch_corridor_success_rate")
        corridor = self._corridors.get(corridor_id)
        if corridor is None:
            return None
        return corridor.success_rate()


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_payment_records(rows: Iterable[Any]) -> List[PaymentRecord]:
    """Convert driver rows, skipping rows that fail validation (e.g. NULL amount)."""
    records: List[PaymentRecord] = []
    skipped = 0
    for row in rows:
        try:
            records.append(PaymentRecord(**dict(row)))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning("Skipped invalid payment rows skipped=%d kept=%d", skipped, len(records))
    return records
