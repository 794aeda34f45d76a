"""Domain models for quote inputs, catalog entries and quote outputs."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Literal

CountryTier = Literal["cheap", "rich"]
TvPlanType = Literal["single", "bundle"]
InstallationType = Literal["remote", "callout", "firestick"]
BillingCycle = Literal["monthly", "yearly"]
LineSection = Literal["due", "recurring"]
LineType = Literal["subscription", "installation", "device", "shipping", "fee", "addon"]
QuoteSource = Literal["tv", "streaming"]


# --- Catalog entries -------------------------------------------------------


@dataclass(frozen=True)
class Country:
    code: str
    name: str
    tier: CountryTier
    flag: str | None = None


@dataclass(frozen=True)
class TvPlanDefinition:
    id: str
    type: TvPlanType
    label: str
    cheap_monthly_lite: float
    cheap_monthly_pro: float
    rich_monthly_lite: float
    rich_monthly_pro: float
    app_fee: float
    devices_included: int
    max_countries: int | None = None
    includes_all_countries: bool = False

    def monthly_price(self, tier: CountryTier, is_pro: bool) -> float:
        """Return the one price point that applies to ``(tier, is_pro)``."""
        if tier == "cheap":
            return self.cheap_monthly_pro if is_pro else self.cheap_monthly_lite
        return self.rich_monthly_pro if is_pro else self.rich_monthly_lite


@dataclass(frozen=True)
class StreamingPlanDefinition:
    id: str
    label: str
    monthly_price: float
    yearly_price: float  # independently set annual rate, not monthly * 12
    vpn_included: bool
    devices_included: int = 1


@dataclass(frozen=True)
class FirestickDefinition:
    id: str
    label: str
    price: float
    recommended: bool = False
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class SeasonalPromo:
    id: str
    active: bool
    end_date: dt.datetime
    percent_off: float
    label: str
    short_label: str
    marker: str

    def is_live(self, now: dt.datetime) -> bool:
        return self.active and now < self.end_date


# --- Inputs ----------------------------------------------------------------


@dataclass
class InstallationSelection:
    type: InstallationType
    firestick_id: str | None = None
    standalone: bool = False  # installation-only product, no subscription


@dataclass
class TvInput:
    plan_id: str
    country_tier: CountryTier
    is_pro: bool
    duration_months: int
    installation: InstallationSelection
    country_code: str | None = None


@dataclass
class StreamingInput:
    plan_id: str
    billing: BillingCycle
    vpn_enabled: bool  # ignored when the plan already includes VPN
    installation: InstallationSelection


@dataclass
class MergeOptions:
    waive_install_for_bundle: bool = False  # TV + HUB both in the order
    order_threshold_free_install: float | None = None
    seasonal_promo_percent_first_month: float | None = None
    seasonal_promo_active: bool = False
    coupon_code: str | None = None


# --- Outputs ---------------------------------------------------------------


@dataclass
class LineItem:
    key: str
    label: str
    amount: float
    section: LineSection
    type: LineType
    original_amount: float | None = None  # pre-discount amount, shown struck through
    reason: str | None = None
    amortized: bool = False  # recurring line that restates a prepaid charge


@dataclass
class Adjustment:
    key: str
    label: str
    amount: float  # negative for discounts
    section: LineSection


@dataclass
class Quote:
    due_today: float
    recurring_monthly: float
    recurring_label: str | None = None
    lines: list[LineItem] = field(default_factory=list)
    adjustments: list[Adjustment] = field(default_factory=list)
    source: QuoteSource | None = None
    # share of recurring_monthly already paid upfront (yearly billing)
    prepaid_monthly_equivalent: float = 0.0

    def lines_in(self, section: LineSection) -> list[LineItem]:
        return [line for line in self.lines if line.section == section]

    def section_total(self, section: LineSection) -> float:
        """Unrounded sum of the lines and adjustments in ``section``."""
        return sum(line.amount for line in self.lines if line.section == section) + sum(
            adjustment.amount
            for adjustment in self.adjustments
            if adjustment.section == section
        )


@dataclass
class InstallationCostResult:
    install: float
    device: float
    shipping: float
    line_items: list[LineItem]


@dataclass
class OrderMetadata:
    plan_id: str
    billing_cycle: Literal["monthly", "yearly", "multi-month"]
    has_bundle: bool
    has_firestick: bool
    install_type: InstallationType
    total_due_today: float
    recurring_monthly: float
    acquisition_channel: Literal["wizard", "phone", "manual"]
    country_code: str | None = None
    country_tier: CountryTier | None = None
    promo_applied: str | None = None
