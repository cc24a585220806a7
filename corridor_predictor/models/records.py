"""Read-only rows served by the payment data store."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentRecord(BaseModel):
    """A historical payment row used to build training examples.

    The store only retains completed payments, so `id` is effectively always
    present and every row trains as a success.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None)
    amount: float = Field(...)
    created_at: datetime = Field(...)
    asset_code: Optional[str] = Field(default=None)
    asset_issuer: Optional[str] = Field(default=None)

    @property
    def succeeded(self) -> bool:
        """Return whether the row counts as a successful payment."""
        return self.id is not None


class CorridorRecord(BaseModel):
    """Corridor statistics keyed by `ASSET_CODE-ASSET_ISSUER`."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    liquidity_depth_usd: Optional[float] = Field(default=None)
    successful_payments: Optional[int] = Field(default=None, ge=0)
    total_attempts: Optional[int] = Field(default=None, ge=0)

    def success_rate(self) -> float:
        """Return successful/total, or 0.0 when total is zero or unknown."""
        if not self.total_attempts or self.successful_payments is None:
            return 0.0
        return float(self.successful_payments) / float(self.total_attempts)
