"""Core quote calculations for the TV and Streaming Hub product lines."""
from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable

from .catalog import (
    ORDER_THRESHOLD_FREE_INSTALL,
    SEASONAL_PROMO,
    VPN_ADDON_MONTHLY_PRICE,
    ensure_country_tier,
    get_duration_discount,
    get_streaming_plan,
    get_tv_plan,
)
from .discounts import apply_discounts
from .domain_models import (
    LineItem,
    MergeOptions,
    Quote,
    SeasonalPromo,
    StreamingInput,
    TvInput,
)
from .formatting import format_currency, round2
from .installation import compute_installation_cost

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def compute_tv_quote(tv_input: TvInput) -> Quote:
    """Quote a TV subscription: app fee, first month, months 2+ and installation."""

    plan = get_tv_plan(tv_input.plan_id)
    tier = ensure_country_tier(tv_input.country_tier)
    discount = get_duration_discount(tv_input.duration_months)

    base_monthly = plan.monthly_price(tier, tv_input.is_pro)
    effective_monthly = round2(base_monthly * (1 - discount))
    plan_label = f"TV Global {'Pro' if tv_input.is_pro else 'Lite'}"

    lines: list[LineItem] = [
        LineItem(
            key="tv-app-fee",
            label="App License Fee",
            amount=plan.app_fee,
            section="due",
            type="fee",
        )
    ]

    first_month = LineItem(
        key="tv-first-month",
        label=f"{plan_label} – first month",
        amount=effective_monthly,
        section="due",
        type="subscription",
    )
    if discount > 0:
        first_month.original_amount = base_monthly
        first_month.reason = (
            f"{round(discount * 100)}% off ({tv_input.duration_months}mo commitment)"
        )
    lines.append(first_month)

    recurring_label = None
    recurring_monthly = 0.0
    if tv_input.duration_months > 1:
        recurring_label = f"for next {tv_input.duration_months - 1} months"
        recurring_monthly = effective_monthly
        lines.append(
            LineItem(
                key="tv-recurring",
                label=f"{plan_label} – recurring",
                amount=effective_monthly,
                section="recurring",
                type="subscription",
            )
        )

    installation = compute_installation_cost(tv_input.installation)
    lines.extend(installation.line_items)

    due_today = round2(
        plan.app_fee
        + effective_monthly
        + installation.install
        + installation.device
        + installation.shipping
    )

    logger.debug(
        "TV quote %s (%s, pro=%s, %smo): due=%.2f recurring=%.2f",
        plan.id,
        tier,
        tv_input.is_pro,
        tv_input.duration_months,
        due_today,
        recurring_monthly,
    )
    return Quote(
        due_today=due_today,
        recurring_monthly=recurring_monthly,
        recurring_label=recurring_label,
        lines=lines,
        adjustments=[],
        source="tv",
    )


def compute_streaming_quote(streaming_input: StreamingInput) -> Quote:
    """Quote a Streaming Hub subscription billed monthly or yearly.

    Monthly billing charges one month today and shows the same amount as
    recurring. Yearly billing charges the annual rate today (the VPN add-on
    at 12x its monthly price) and shows the amortized monthly equivalent as
    recurring.
    """

    plan = get_streaming_plan(streaming_input.plan_id)
    if streaming_input.billing not in ("monthly", "yearly"):
        raise ValueError(f"Unsupported billing cycle: {streaming_input.billing!r}")

    vpn_cost = 0.0
    if streaming_input.vpn_enabled and not plan.vpn_included:
        vpn_cost = VPN_ADDON_MONTHLY_PRICE

    lines: list[LineItem] = []

    if streaming_input.billing == "monthly":
        subscription_due = round2(plan.monthly_price + vpn_cost)
        recurring_monthly = subscription_due
        recurring_label = "billed monthly"
        prepaid_monthly_equivalent = 0.0

        lines.append(
            LineItem(
                key="streaming-first-month",
                label=f"Streaming HUB {plan.label} – first month",
                amount=plan.monthly_price,
                section="due",
                type="subscription",
            )
        )
        if vpn_cost > 0:
            lines.append(
                LineItem(
                    key="streaming-vpn",
                    label="VPN Privacy Add-on",
                    amount=vpn_cost,
                    section="due",
                    type="addon",
                )
            )
            lines.append(
                LineItem(
                    key="streaming-vpn-recurring",
                    label="VPN Privacy Add-on",
                    amount=vpn_cost,
                    section="recurring",
                    type="addon",
                )
            )
        lines.append(
            LineItem(
                key="streaming-recurring",
                label=f"Streaming HUB {plan.label} – recurring",
                amount=plan.monthly_price,
                section="recurring",
                type="subscription",
            )
        )
    else:
        vpn_yearly = round2(vpn_cost * 12)
        subscription_due = round2(plan.yearly_price + vpn_yearly)
        recurring_monthly = round2(subscription_due / 12)
        recurring_label = "billed annually"
        prepaid_monthly_equivalent = recurring_monthly

        full_price = round2(plan.monthly_price * 12)
        lines.append(
            LineItem(
                key="streaming-yearly",
                label=f"Streaming HUB {plan.label} – yearly",
                amount=plan.yearly_price,
                section="due",
                type="subscription",
                original_amount=full_price,
                reason=f"Save {format_currency(full_price - plan.yearly_price)}",
            )
        )
        if vpn_cost > 0:
            lines.append(
                LineItem(
                    key="streaming-vpn-yearly",
                    label="VPN Privacy Add-on (12 months)",
                    amount=vpn_yearly,
                    section="due",
                    type="addon",
                )
            )
        # Informational only: nothing is charged again until renewal.
        lines.append(
            LineItem(
                key="streaming-yearly-recurring",
                label=f"Streaming HUB {plan.label} – monthly equivalent",
                amount=recurring_monthly,
                section="recurring",
                type="subscription",
                amortized=True,
            )
        )

    installation = compute_installation_cost(streaming_input.installation)
    lines.extend(installation.line_items)

    due_today = round2(
        subscription_due + installation.install + installation.device + installation.shipping
    )

    logger.debug(
        "Streaming quote %s (%s, vpn=%s): due=%.2f recurring=%.2f",
        plan.id,
        streaming_input.billing,
        vpn_cost > 0,
        due_today,
        recurring_monthly,
    )
    return Quote(
        due_today=due_today,
        recurring_monthly=recurring_monthly,
        recurring_label=recurring_label,
        lines=lines,
        adjustments=[],
        source="streaming",
        prepaid_monthly_equivalent=prepaid_monthly_equivalent,
    )


def build_recurring_label(quotes: Iterable[Quote]) -> str | None:
    """Combine the recurring labels of several quotes into one."""

    labels = [quote.recurring_label for quote in quotes if quote.recurring_label]
    if not labels:
        return None
    if len(labels) == 1:
        return labels[0]

    has_monthly = any("monthly" in label for label in labels)
    has_yearly = any("annually" in label for label in labels)
    if has_monthly and has_yearly:
        return "mixed billing"
    return labels[0]


def merge_quotes(quotes: list[Quote], options: MergeOptions) -> Quote:
    """Combine product quotes into one order quote and apply order discounts."""

    if not quotes:
        return Quote(due_today=0.0, recurring_monthly=0.0)

    if len(quotes) == 1:
        return apply_discounts(quotes[0], options)

    merged = Quote(
        due_today=0.0,
        recurring_monthly=0.0,
        recurring_label=build_recurring_label(quotes),
        lines=[line for quote in quotes for line in quote.lines],
        adjustments=[adjustment for quote in quotes for adjustment in quote.adjustments],
    )
    return apply_discounts(merged, options)


def get_seasonal_promo_options(
    now: dt.datetime | None = None,
    promo: SeasonalPromo = SEASONAL_PROMO,
) -> dict[str, object]:
    """Return the promo fields of :class:`MergeOptions` for the moment ``now``."""

    active = promo.is_live(now or _utcnow())
    return {
        "seasonal_promo_active": active,
        "seasonal_promo_percent_first_month": promo.percent_off if active else None,
    }


def get_default_merge_options(
    has_tv: bool,
    has_streaming: bool,
    coupon_code: str | None = None,
    now: dt.datetime | None = None,
    *,
    order_threshold: float | None = ORDER_THRESHOLD_FREE_INSTALL,
    promo_enabled: bool = True,
) -> MergeOptions:
    promo_options = (
        get_seasonal_promo_options(now)
        if promo_enabled
        else {"seasonal_promo_active": False, "seasonal_promo_percent_first_month": None}
    )
    return MergeOptions(
        waive_install_for_bundle=has_tv and has_streaming,
        order_threshold_free_install=order_threshold,
        coupon_code=coupon_code or None,
        **promo_options,
    )


def compute_order_quote(
    tv_input: TvInput | None,
    streaming_input: StreamingInput | None,
    coupon_code: str | None = None,
    now: dt.datetime | None = None,
    *,
    order_threshold: float | None = ORDER_THRESHOLD_FREE_INSTALL,
    promo_enabled: bool = True,
) -> Quote:
    """Quote a full order from TV and/or Streaming inputs with default options."""

    quotes: list[Quote] = []
    if tv_input is not None:
        quotes.append(compute_tv_quote(tv_input))
    if streaming_input is not None:
        quotes.append(compute_streaming_quote(streaming_input))

    options = get_default_merge_options(
        tv_input is not None,
        streaming_input is not None,
        coupon_code=coupon_code,
        now=now,
        order_threshold=order_threshold,
        promo_enabled=promo_enabled,
    )
    return merge_quotes(quotes, options)


__all__ = [
    "build_recurring_label",
    "compute_order_quote",
    "compute_streaming_quote",
    "compute_tv_quote",
    "get_default_merge_options",
    "get_seasonal_promo_options",
    "merge_quotes",
]
