"""Pydantic schemas for rate tables and computed quotes."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, FrozenSet, List

from pydantic import Field, field_validator, model_validator

from ..core.enums import AddOnPricing, LineItemCategory, ServiceType
from ._strict_base import FrozenModel

# ISO weekday numbers (Monday=1). Thursday through Saturday carry the premium rate.
DEFAULT_WEEKEND_DAYS: FrozenSet[int] = frozenset({4, 5, 6})


class AddOn(FrozenModel):
    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    pricing: AddOnPricing = AddOnPricing.FLAT
    amount: Decimal = Field(Decimal("0"), ge=0, description="Flat price or price per guest")
    is_winery_stop: bool = Field(
        False, description="Counts toward the informational tasting-fee estimate"
    )


class RateTable(FrozenModel):
    """
    Versioned pricing parameters.

    Percentages are decimal fractions (0.15 == 15%). Loaded once per quote
    computation and treated as a value.
    """

    version: str = Field(..., min_length=1)
    base_rate_by_duration: Dict[Decimal, Decimal] = Field(
        ..., description="Duration bucket (hours) -> base price covering base_party_size guests"
    )
    base_party_size: int = Field(..., ge=1)
    per_person_overage_rate: Decimal = Field(..., ge=0)
    weekend_surcharge_pct: Decimal = Field(Decimal("0"), ge=0)
    holiday_surcharge_pct: Decimal = Field(Decimal("0"), ge=0)
    large_group_discount_pct: Decimal = Field(Decimal("0"), ge=0, le=1)
    party_size_threshold: int = Field(..., ge=1)
    tax_rate_pct: Decimal = Field(..., ge=0)
    deposit_pct: Decimal = Field(..., ge=0, le=1)
    duration_tolerance_hours: Decimal = Field(Decimal("0.5"), ge=0)
    add_ons: Dict[str, AddOn] = Field(default_factory=dict)
    tasting_fee_per_stop: Decimal = Field(Decimal("0"), ge=0)
    average_meal_cost: Decimal = Field(Decimal("0"), ge=0)
    meals_per_day: int = Field(0, ge=0)
    weekend_days: FrozenSet[int] = DEFAULT_WEEKEND_DAYS
    holidays: FrozenSet[date] = frozenset()

    @field_validator("base_rate_by_duration")
    @classmethod
    def validate_buckets(cls, value: Dict[Decimal, Decimal]) -> Dict[Decimal, Decimal]:
        if not value:
            raise ValueError("At least one duration bucket is required")
        for hours, price in value.items():
            if hours <= 0:
                raise ValueError("Duration buckets must be positive")
            if price < 0:
                raise ValueError("Base rates must be non-negative")
        return dict(sorted(value.items()))

    @field_validator("weekend_days")
    @classmethod
    def validate_weekend_days(cls, value: FrozenSet[int]) -> FrozenSet[int]:
        if any(day < 1 or day > 7 for day in value):
            raise ValueError("weekend_days uses ISO weekday numbers 1-7")
        return value

    @model_validator(mode="after")
    def validate_add_on_keys(self) -> "RateTable":
        for key, add_on in self.add_ons.items():
            if key != add_on.id:
                raise ValueError(f"Add-on key {key!r} does not match its id {add_on.id!r}")
        return self

    @property
    def duration_buckets(self) -> List[Decimal]:
        return list(self.base_rate_by_duration.keys())


class RateCatalog(FrozenModel):
    """Default rate table plus optional per-service-type overrides."""

    default: RateTable
    by_service_type: Dict[ServiceType, RateTable] = Field(default_factory=dict)

    def table_for(self, service_type: ServiceType) -> RateTable:
        return self.by_service_type.get(service_type, self.default)


class CalendarFacts(FrozenModel):
    is_weekend: bool = False
    is_holiday: bool = False


class LineItem(FrozenModel):
    code: str
    label: str
    category: LineItemCategory
    amount: Decimal


class TbdEstimate(FrozenModel):
    """
    Informational tasting/dining estimate.

    Kept as its own type on Quote; it is never summed into the priced total
    or the deposit base.
    """

    tasting: Decimal = Decimal("0.00")
    dining: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    line_items: List[LineItem] = Field(default_factory=list)


class Quote(FrozenModel):
    tour_services_subtotal: Decimal
    tbd_estimate: TbdEstimate
    tax_amount: Decimal
    total: Decimal
    deposit_amount: Decimal
    balance_due: Decimal
    breakdown: List[LineItem]
    duration_bucket_hours: Decimal
    rate_table_version: str
    calendar_facts: CalendarFacts
    service_type: ServiceType
    party_size: int
    currency: str = "USD"


__all__ = [
    "AddOn",
    "CalendarFacts",
    "LineItem",
    "Quote",
    "RateCatalog",
    "RateTable",
    "TbdEstimate",
]
