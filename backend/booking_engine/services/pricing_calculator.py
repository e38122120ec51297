"""
Quote computation for booking requests.

Everything here is a pure function of (request, rate table, calendar
facts): no I/O, no clock, no shared state. Money is ``Decimal`` and is
rounded half-up to cents exactly once per line item.

Multiplier stages (weekend, holiday, large-group discount) are applied to
the unrounded running subtotal. Each stage's line item is the difference
between consecutive rounded running totals, so the itemized breakdown
always sums to the tour services subtotal to the cent.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Tuple

from ..core.enums import AddOnPricing, LineItemCategory
from ..core.exceptions import (
    InvalidDurationException,
    InvalidPartySizeException,
    UnknownAddOnException,
)
from ..schemas.booking import BookingRequest
from ..schemas.pricing import CalendarFacts, LineItem, Quote, RateTable, TbdEstimate

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
DURATION_STEP_HOURS = Decimal("0.25")
# Single-date bookings: the dining estimate covers one day.
TBD_DINING_DAYS = 1


def round2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _fmt_pct(pct: Decimal) -> str:
    return f"{(pct * 100).normalize():f}%"


def validate_duration(duration_hours: Decimal) -> Decimal:
    hours = Decimal(duration_hours)
    if not hours.is_finite() or hours <= 0:
        raise InvalidDurationException(
            "Duration must be a positive number of hours", duration_hours=duration_hours
        )
    if hours % DURATION_STEP_HOURS != 0:
        raise InvalidDurationException(
            "Duration must be a multiple of 0.25 hours", duration_hours=duration_hours
        )
    return hours


def nearest_duration_bucket(duration_hours: Decimal, rates: RateTable) -> Decimal:
    """
    Match a requested duration to the closest priced bucket.

    Equidistant durations resolve to the larger bucket. A duration further
    than ``rates.duration_tolerance_hours`` from every bucket is rejected.
    """
    hours = validate_duration(duration_hours)
    bucket = min(rates.duration_buckets, key=lambda candidate: (abs(candidate - hours), -candidate))
    if abs(bucket - hours) > rates.duration_tolerance_hours:
        raise InvalidDurationException(
            f"No priced duration within {rates.duration_tolerance_hours}h of {hours}h "
            f"(available: {', '.join(str(b) for b in rates.duration_buckets)})",
            duration_hours=duration_hours,
        )
    return bucket


def calendar_facts_for(tour_date: date, rates: RateTable) -> CalendarFacts:
    return CalendarFacts(
        is_weekend=tour_date.isoweekday() in rates.weekend_days,
        is_holiday=tour_date in rates.holidays,
    )


def validate_request(request: BookingRequest, rates: RateTable) -> Decimal:
    """Check everything about a request that depends on the rate table; returns the bucket."""
    if request.party_size < 1:
        raise InvalidPartySizeException(request.party_size)
    bucket = nearest_duration_bucket(request.duration_hours, rates)
    unknown = [
        add_on_id for add_on_id in request.selected_add_ons if add_on_id not in rates.add_ons
    ]
    if unknown:
        raise UnknownAddOnException(unknown)
    return bucket


def _multiplier_stages(
    rates: RateTable, calendar_facts: CalendarFacts, party_size: int
) -> List[Tuple[str, str, Decimal]]:
    stages: List[Tuple[str, str, Decimal]] = []
    if calendar_facts.is_weekend:
        stages.append(
            (
                "weekend_surcharge",
                f"Weekend surcharge ({_fmt_pct(rates.weekend_surcharge_pct)})",
                Decimal(1) + rates.weekend_surcharge_pct,
            )
        )
    if calendar_facts.is_holiday:
        stages.append(
            (
                "holiday_surcharge",
                f"Holiday surcharge ({_fmt_pct(rates.holiday_surcharge_pct)})",
                Decimal(1) + rates.holiday_surcharge_pct,
            )
        )
    # Discount comes after surcharges and applies to the inflated amount.
    if party_size >= rates.party_size_threshold:
        stages.append(
            (
                "large_group_discount",
                f"Large group discount ({_fmt_pct(rates.large_group_discount_pct)})",
                Decimal(1) - rates.large_group_discount_pct,
            )
        )
    return stages


def _add_on_lines(
    selected: Iterable[str], rates: RateTable, party_size: int
) -> List[LineItem]:
    lines: List[LineItem] = []
    for add_on_id in sorted(selected):
        add_on = rates.add_ons[add_on_id]
        cost = add_on.amount
        label = add_on.label
        if add_on.pricing == AddOnPricing.PER_PERSON:
            cost = add_on.amount * party_size
            label = f"{add_on.label} ({party_size} x {round2(add_on.amount)})"
        lines.append(
            LineItem(
                code=f"add_on:{add_on_id}",
                label=label,
                category=LineItemCategory.ADD_ON,
                amount=round2(cost),
            )
        )
    return lines


def compute_tbd_estimate(request: BookingRequest, rates: RateTable) -> TbdEstimate:
    """Informational tasting and dining figures; never part of the priced total."""
    winery_stops = sum(
        1
        for add_on_id in request.selected_add_ons
        if add_on_id in rates.add_ons and rates.add_ons[add_on_id].is_winery_stop
    )
    tasting = round2(rates.tasting_fee_per_stop * winery_stops * request.party_size)
    dining = round2(
        rates.average_meal_cost * request.party_size * rates.meals_per_day * TBD_DINING_DAYS
    )
    line_items = []
    if tasting:
        line_items.append(
            LineItem(
                code="tbd_tasting",
                label=f"Tasting fees (est., {winery_stops} stop(s) x {request.party_size} guests)",
                category=LineItemCategory.TBD,
                amount=tasting,
            )
        )
    if dining:
        line_items.append(
            LineItem(
                code="tbd_dining",
                label=f"Meals (est., {request.party_size} guests)",
                category=LineItemCategory.TBD,
                amount=dining,
            )
        )
    return TbdEstimate(
        tasting=tasting, dining=dining, total=tasting + dining, line_items=line_items
    )


def compute_quote(
    request: BookingRequest, rates: RateTable, calendar_facts: CalendarFacts
) -> Quote:
    """
    Price a booking request.

    Args:
        request: The proposed booking
        rates: Rate table snapshot for the request's service type
        calendar_facts: Weekend/holiday flags for the tour date

    Returns:
        Itemized Quote

    Raises:
        InvalidDurationException: Duration is not a positive multiple of 0.25h
            or is outside tolerance of every bucket
        InvalidPartySizeException: Party size below 1
        UnknownAddOnException: An add-on id is not in the rate table's catalog
    """
    bucket = validate_request(request, rates)
    party_size = request.party_size

    base = rates.base_rate_by_duration[bucket]
    overage_persons = max(0, party_size - rates.base_party_size)
    overage_cost = overage_persons * rates.per_person_overage_rate

    breakdown: List[LineItem] = []
    running = base
    rounded = round2(base)
    breakdown.append(
        LineItem(
            code="base_rate",
            label=f"Base rate ({bucket.normalize():f}h, up to {rates.base_party_size} guests)",
            category=LineItemCategory.TOUR_SERVICES,
            amount=rounded,
        )
    )
    if overage_persons:
        running = base + overage_cost
        previous, rounded = rounded, round2(running)
        breakdown.append(
            LineItem(
                code="party_overage",
                label=(
                    f"Additional guests ({overage_persons} x "
                    f"{round2(rates.per_person_overage_rate)})"
                ),
                category=LineItemCategory.TOUR_SERVICES,
                amount=rounded - previous,
            )
        )

    for code, label, factor in _multiplier_stages(rates, calendar_facts, party_size):
        running = running * factor
        previous, rounded = rounded, round2(running)
        breakdown.append(
            LineItem(
                code=code,
                label=label,
                category=LineItemCategory.TOUR_SERVICES,
                amount=rounded - previous,
            )
        )

    add_on_lines = _add_on_lines(request.selected_add_ons, rates, party_size)
    breakdown.extend(add_on_lines)
    add_on_total = sum((line.amount for line in add_on_lines), ZERO)

    tour_services_subtotal = round2(running + add_on_total)
    tax_amount = round2(tour_services_subtotal * rates.tax_rate_pct)
    breakdown.append(
        LineItem(
            code="tax",
            label=f"Tax ({_fmt_pct(rates.tax_rate_pct)})",
            category=LineItemCategory.TAX,
            amount=tax_amount,
        )
    )
    total = tour_services_subtotal + tax_amount
    deposit_amount = round2(tour_services_subtotal * rates.deposit_pct)

    return Quote(
        tour_services_subtotal=tour_services_subtotal,
        tbd_estimate=compute_tbd_estimate(request, rates),
        tax_amount=tax_amount,
        total=total,
        deposit_amount=deposit_amount,
        balance_due=total - deposit_amount,
        breakdown=breakdown,
        duration_bucket_hours=bucket,
        rate_table_version=rates.version,
        calendar_facts=calendar_facts,
        service_type=request.service_type,
        party_size=party_size,
    )


__all__ = [
    "calendar_facts_for",
    "compute_quote",
    "compute_tbd_estimate",
    "nearest_duration_bucket",
    "round2",
    "validate_duration",
    "validate_request",
]
