"""Static catalog tables and lookups for TV, Streaming Hub and devices."""
from __future__ import annotations

import datetime as dt

from .domain_models import (
    Country,
    CountryTier,
    FirestickDefinition,
    SeasonalPromo,
    StreamingPlanDefinition,
    TvPlanDefinition,
)


class CatalogLookupError(LookupError):
    """Raised when an identifier is not present in the catalog."""

    def __init__(self, kind: str, identifier: object):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind}: {identifier!r}")


COUNTRY_TIERS: tuple[CountryTier, ...] = ("cheap", "rich")

COUNTRIES: tuple[Country, ...] = (
    # Rich
    Country(code="uk", name="United Kingdom", tier="rich", flag="🇬🇧"),
    Country(code="de", name="Germany", tier="rich", flag="🇩🇪"),
    Country(code="fr", name="France", tier="rich", flag="🇫🇷"),
    Country(code="it", name="Italy", tier="rich", flag="🇮🇹"),
    Country(code="es", name="Spain", tier="rich", flag="🇪🇸"),
    Country(code="il", name="Israel", tier="rich", flag="🇮🇱"),
    Country(code="ru", name="Russia", tier="rich", flag="🇷🇺"),
    # Cheap
    Country(code="pl", name="Poland", tier="cheap", flag="🇵🇱"),
    Country(code="ua", name="Ukraine", tier="cheap", flag="🇺🇦"),
    Country(code="ge", name="Georgia", tier="cheap", flag="🇬🇪"),
    Country(code="am", name="Armenia", tier="cheap", flag="🇦🇲"),
    Country(code="kz", name="Kazakhstan", tier="cheap", flag="🇰🇿"),
    Country(code="baltic", name="Baltics (LT/LV/EE)", tier="cheap", flag="🇪🇪"),
    Country(code="ro_md", name="Romania & Moldova", tier="cheap", flag="🇷🇴"),
    Country(code="tr_az", name="Türkiye & Azerbaijan", tier="cheap", flag="🇹🇷"),
)

TV_PLANS: tuple[TvPlanDefinition, ...] = (
    TvPlanDefinition(
        id="tv-single",
        type="single",
        label="Single Country",
        cheap_monthly_lite=11.99,
        cheap_monthly_pro=14.99,
        rich_monthly_lite=14.99,
        rich_monthly_pro=18.99,
        app_fee=4.99,
        devices_included=1,
        max_countries=1,
    ),
    TvPlanDefinition(
        id="tv-eu-pack",
        type="bundle",
        label="EU & Friends Pack",
        cheap_monthly_lite=19.99,
        cheap_monthly_pro=24.99,
        rich_monthly_lite=24.99,
        rich_monthly_pro=29.99,
        app_fee=4.99,
        devices_included=2,
        max_countries=5,
    ),
    TvPlanDefinition(
        id="tv-world",
        type="bundle",
        label="World Unlimited",
        cheap_monthly_lite=24.99,
        cheap_monthly_pro=29.99,
        rich_monthly_lite=24.99,
        rich_monthly_pro=29.99,
        app_fee=4.99,
        devices_included=2,
        includes_all_countries=True,
    ),
)

# Months -> fraction off the monthly price
TV_DURATION_DISCOUNTS: dict[int, float] = {
    1: 0.0,
    3: 0.05,
    6: 0.10,
    12: 0.15,
}

STREAMING_PLANS: tuple[StreamingPlanDefinition, ...] = (
    StreamingPlanDefinition(
        id="cinema-lite",
        label="Lite",
        monthly_price=14.99,
        yearly_price=149.99,
        vpn_included=False,
    ),
    StreamingPlanDefinition(
        id="cinema-pro",
        label="Pro",
        monthly_price=19.99,
        yearly_price=199.99,
        vpn_included=True,
    ),
)

VPN_ADDON_MONTHLY_PRICE = 2.99

FIRESTICKS: tuple[FirestickDefinition, ...] = (
    FirestickDefinition(
        id="lite", label="Fire TV Stick Lite", price=59.00, features=("Full HD", "Basic remote")
    ),
    FirestickDefinition(
        id="4k",
        label="Fire TV Stick 4K",
        price=84.99,
        recommended=True,
        features=("4K Ultra HD", "HDR support"),
    ),
    FirestickDefinition(
        id="4k-max",
        label="Fire TV Stick 4K Max",
        price=99.99,
        features=("4K Ultra HD", "Faster CPU", "Wi-Fi 6E"),
    ),
    FirestickDefinition(
        id="cube",
        label="Fire TV Cube",
        price=189.99,
        features=("4K Ultra HD", "Built-in speaker", "Extra ports"),
    ),
)

INSTALLATION_PRICES: dict[str, float] = {
    "remote": 30.00,
    "remote_standalone": 45.00,
    "callout": 69.99,
    "callout_standalone": 89.99,
}

SHIPPING: dict[str, float] = {
    "free_threshold": 100.00,  # free when the device subtotal is strictly above
    "standard_rate": 5.99,
}

# Fraction off installation when TV + HUB are ordered together
BUNDLE_DISCOUNTS: dict[str, float] = {
    "remote": 1.0,
    "callout": 0.5,
}

# Fraction off installation when the due-today subtotal reaches the threshold
THRESHOLD_DISCOUNTS: dict[str, float] = {
    "remote": 1.0,
    "callout": 0.5,
}

ORDER_THRESHOLD_FREE_INSTALL = 40.00

COUPON_PERCENT_OFF = 0.10

SEASONAL_PROMO = SeasonalPromo(
    id="christmas-2025",
    active=True,
    end_date=dt.datetime(2025, 12, 26, tzinfo=dt.timezone.utc),
    percent_off=0.20,
    label="Christmas offer: 20% off your first month",
    short_label="Christmas -20%",
    marker="Christmas",
)


def get_tv_plan(plan_id: str) -> TvPlanDefinition:
    for plan in TV_PLANS:
        if plan.id == plan_id:
            return plan
    raise CatalogLookupError("TV plan", plan_id)


def get_streaming_plan(plan_id: str) -> StreamingPlanDefinition:
    for plan in STREAMING_PLANS:
        if plan.id == plan_id:
            return plan
    raise CatalogLookupError("streaming plan", plan_id)


def get_firestick(firestick_id: str | None = None) -> FirestickDefinition:
    """Return the device with ``firestick_id``, or the recommended one if omitted."""
    if firestick_id is None:
        return next(stick for stick in FIRESTICKS if stick.recommended)
    for stick in FIRESTICKS:
        if stick.id == firestick_id:
            return stick
    raise CatalogLookupError("firestick", firestick_id)


def get_country(code: str) -> Country:
    for country in COUNTRIES:
        if country.code == code:
            return country
    raise CatalogLookupError("country", code)


def get_duration_discount(duration_months: int) -> float:
    try:
        return TV_DURATION_DISCOUNTS[duration_months]
    except KeyError as exc:
        raise CatalogLookupError("duration", duration_months) from exc


def ensure_country_tier(tier: str) -> CountryTier:
    if tier not in COUNTRY_TIERS:
        raise CatalogLookupError("country tier", tier)
    return tier  # type: ignore[return-value]


__all__ = [
    "BUNDLE_DISCOUNTS",
    "COUNTRIES",
    "COUNTRY_TIERS",
    "COUPON_PERCENT_OFF",
    "CatalogLookupError",
    "FIRESTICKS",
    "INSTALLATION_PRICES",
    "ORDER_THRESHOLD_FREE_INSTALL",
    "SEASONAL_PROMO",
    "SHIPPING",
    "STREAMING_PLANS",
    "THRESHOLD_DISCOUNTS",
    "TV_DURATION_DISCOUNTS",
    "TV_PLANS",
    "VPN_ADDON_MONTHLY_PRICE",
    "ensure_country_tier",
    "get_country",
    "get_duration_discount",
    "get_firestick",
    "get_streaming_plan",
    "get_tv_plan",
]
