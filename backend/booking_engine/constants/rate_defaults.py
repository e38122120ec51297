# backend/booking_engine/constants/rate_defaults.py
"""
Built-in rate catalog used when no RATE_TABLE_PATH is configured.

Tax and deposit follow the operator's published terms (9.1% combined
state and local tax, 50% deposit). Thursday through Saturday are priced
as weekend days.
"""

from decimal import Decimal

from ..core.enums import AddOnPricing, ServiceType
from ..schemas.pricing import AddOn, RateCatalog, RateTable

DEFAULT_RATE_TABLE_VERSION = "2025.1"

TAX_RATE_PCT = Decimal("0.091")
DEPOSIT_PCT = Decimal("0.50")

_ADD_ONS = [
    AddOn(id="winery_stop_1", label="Winery stop 1", is_winery_stop=True),
    AddOn(id="winery_stop_2", label="Winery stop 2", is_winery_stop=True),
    AddOn(id="winery_stop_3", label="Winery stop 3", is_winery_stop=True),
    AddOn(id="winery_stop_4", label="Winery stop 4", is_winery_stop=True),
    AddOn(id="lunch_coordination", label="Lunch coordination"),
    AddOn(
        id="picnic_setup",
        label="Picnic setup",
        pricing=AddOnPricing.PER_PERSON,
        amount=Decimal("12.50"),
    ),
    AddOn(id="photography", label="Tour photography", amount=Decimal("150.00")),
    AddOn(id="custom_itinerary", label="Custom itinerary", amount=Decimal("75.00")),
]

TOUR_RATE_TABLE = RateTable(
    version=DEFAULT_RATE_TABLE_VERSION,
    base_rate_by_duration={
        Decimal("4"): Decimal("600.00"),
        Decimal("5"): Decimal("750.00"),
        Decimal("6"): Decimal("900.00"),
        Decimal("8"): Decimal("1150.00"),
    },
    base_party_size=4,
    per_person_overage_rate=Decimal("50.00"),
    weekend_surcharge_pct=Decimal("0.15"),
    holiday_surcharge_pct=Decimal("0.20"),
    large_group_discount_pct=Decimal("0.10"),
    party_size_threshold=10,
    tax_rate_pct=TAX_RATE_PCT,
    deposit_pct=DEPOSIT_PCT,
    add_ons={add_on.id: add_on for add_on in _ADD_ONS},
    tasting_fee_per_stop=Decimal("25.00"),
    average_meal_cost=Decimal("30.00"),
    meals_per_day=1,
)

TRANSFER_RATE_TABLE = RateTable(
    version=DEFAULT_RATE_TABLE_VERSION,
    base_rate_by_duration={
        Decimal("1"): Decimal("150.00"),
        Decimal("2"): Decimal("250.00"),
        Decimal("3"): Decimal("350.00"),
        Decimal("4"): Decimal("450.00"),
    },
    base_party_size=4,
    per_person_overage_rate=Decimal("20.00"),
    weekend_surcharge_pct=Decimal("0.10"),
    holiday_surcharge_pct=Decimal("0.20"),
    party_size_threshold=10,
    tax_rate_pct=TAX_RATE_PCT,
    deposit_pct=DEPOSIT_PCT,
    duration_tolerance_hours=Decimal("0.5"),
)

WAIT_TIME_RATE_TABLE = RateTable(
    version=DEFAULT_RATE_TABLE_VERSION,
    base_rate_by_duration={
        Decimal("1"): Decimal("75.00"),
        Decimal("2"): Decimal("150.00"),
        Decimal("3"): Decimal("225.00"),
        Decimal("4"): Decimal("300.00"),
    },
    base_party_size=4,
    per_person_overage_rate=Decimal("5.00"),
    weekend_surcharge_pct=Decimal("0.10"),
    party_size_threshold=9,
    tax_rate_pct=TAX_RATE_PCT,
    deposit_pct=DEPOSIT_PCT,
)

DEFAULT_RATE_CATALOG = RateCatalog(
    default=TOUR_RATE_TABLE,
    by_service_type={
        ServiceType.TRANSFER: TRANSFER_RATE_TABLE,
        ServiceType.WAIT_TIME: WAIT_TIME_RATE_TABLE,
    },
)
