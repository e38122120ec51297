"""Append-only quote ledger entries."""

from datetime import datetime

from pydantic import Field, field_validator

from ..core.timezone_utils import ensure_utc
from ._strict_base import FrozenModel
from .pricing import Quote


class QuoteVersion(FrozenModel):
    booking_id: str
    version_number: int = Field(..., ge=1)
    quote: Quote
    created_at: datetime
    reason: str = Field(..., min_length=1, max_length=100)

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


__all__ = ["QuoteVersion"]
