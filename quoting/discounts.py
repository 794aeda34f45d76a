"""Order-level discount pipeline.

Discounts run as an ordered list of stages over a working copy of a quote's
lines and adjustments. Order matters: each stage sees what the earlier
stages did. A stage names the stages it is excluded by, and is skipped when
any of them has already run.

1. ``bundle`` - TV + HUB in one order: installation discounted.
2. ``order-threshold`` - due-today subtotal reaches the threshold:
   installation discounted. Excluded by ``bundle``.
3. ``seasonal-promo`` - percent off the first-month subscription lines,
   compounding on any earlier discount.
4. ``coupon`` - a single negative adjustment worth a share of the due
   subscription lines.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from .catalog import BUNDLE_DISCOUNTS, COUPON_PERCENT_OFF, SEASONAL_PROMO, THRESHOLD_DISCOUNTS
from .domain_models import Adjustment, LineItem, MergeOptions, Quote
from .formatting import clamp_non_negative, format_threshold, round2

logger = logging.getLogger(__name__)


@dataclass
class DiscountContext:
    lines: list[LineItem]
    adjustments: list[Adjustment]
    options: MergeOptions
    applied: list[str] = field(default_factory=list)

    def due_lines_subtotal(self) -> float:
        return sum(line.amount for line in self.lines if line.section == "due")


class DiscountStage:
    name = ""
    excluded_by: tuple[str, ...] = ()

    def is_enabled(self, options: MergeOptions) -> bool:
        raise NotImplementedError

    def apply(self, context: DiscountContext) -> None:
        raise NotImplementedError


def _installation_kind(line: LineItem) -> str | None:
    if "remote" in line.key:
        return "remote"
    if "callout" in line.key:
        return "callout"
    return None


def _discount_installation(line: LineItem, fraction: float, reason: str) -> None:
    if line.original_amount is None:
        line.original_amount = line.amount
    line.amount = round2(line.original_amount * (1 - fraction))
    line.reason = reason


class BundleInstallDiscount(DiscountStage):
    name = "bundle"

    def is_enabled(self, options: MergeOptions) -> bool:
        return options.waive_install_for_bundle

    def apply(self, context: DiscountContext) -> None:
        for line in context.lines:
            if line.type != "installation" or line.section != "due":
                continue
            kind = _installation_kind(line)
            if kind == "remote":
                _discount_installation(line, BUNDLE_DISCOUNTS["remote"], "Bundle TV + HUB")
            elif kind == "callout":
                fraction = BUNDLE_DISCOUNTS["callout"]
                _discount_installation(
                    line, fraction, f"Bundle TV + HUB (-{round(fraction * 100)}%)"
                )


class OrderThresholdInstallDiscount(DiscountStage):
    name = "order-threshold"
    excluded_by = ("bundle",)

    def is_enabled(self, options: MergeOptions) -> bool:
        return bool(options.order_threshold_free_install)

    def apply(self, context: DiscountContext) -> None:
        threshold = context.options.order_threshold_free_install
        subtotal = round2(context.due_lines_subtotal())
        if subtotal < threshold:
            logger.debug("Order subtotal %.2f below threshold %.2f", subtotal, threshold)
            return

        reason = f"Order over {format_threshold(threshold)}"
        for line in context.lines:
            if line.type != "installation" or line.section != "due" or line.reason:
                continue
            kind = _installation_kind(line)
            if kind == "remote":
                _discount_installation(line, THRESHOLD_DISCOUNTS["remote"], reason)
            elif kind == "callout":
                fraction = THRESHOLD_DISCOUNTS["callout"]
                _discount_installation(
                    line, fraction, f"{reason} (-{round(fraction * 100)}%)"
                )


class SeasonalPromoDiscount(DiscountStage):
    name = "seasonal-promo"

    def __init__(self, short_label: str = SEASONAL_PROMO.short_label):
        self.short_label = short_label

    def is_enabled(self, options: MergeOptions) -> bool:
        return options.seasonal_promo_active and bool(options.seasonal_promo_percent_first_month)

    def apply(self, context: DiscountContext) -> None:
        percent_off = context.options.seasonal_promo_percent_first_month
        for line in context.lines:
            if (
                line.type != "subscription"
                or line.section != "due"
                or "first-month" not in line.key
            ):
                continue
            current = line.amount
            discount = round2(current * percent_off)
            if line.original_amount is None:
                line.original_amount = current
            line.amount = clamp_non_negative(round2(current - discount))
            line.reason = f"{line.reason}, {self.short_label}" if line.reason else self.short_label


class CouponDiscount(DiscountStage):
    name = "coupon"

    def __init__(self, percent_off: float = COUPON_PERCENT_OFF):
        self.percent_off = percent_off

    def is_enabled(self, options: MergeOptions) -> bool:
        return bool(options.coupon_code and options.coupon_code.strip())

    def apply(self, context: DiscountContext) -> None:
        code = context.options.coupon_code.strip()
        total_discount = sum(
            round2(line.amount * self.percent_off)
            for line in context.lines
            if line.type == "subscription" and line.section == "due"
        )
        if total_discount <= 0:
            return
        context.adjustments.append(
            Adjustment(
                key=f"coupon-{code}",
                label=f"Promo code {code.upper()}",
                amount=-round2(total_discount),
                section="due",
            )
        )


DISCOUNT_PIPELINE: tuple[DiscountStage, ...] = (
    BundleInstallDiscount(),
    OrderThresholdInstallDiscount(),
    SeasonalPromoDiscount(),
    CouponDiscount(),
)


def apply_discounts(
    quote: Quote,
    options: MergeOptions,
    pipeline: tuple[DiscountStage, ...] = DISCOUNT_PIPELINE,
) -> Quote:
    """Run ``pipeline`` over a copy of ``quote`` and recompute both totals."""

    context = DiscountContext(
        lines=[replace(line) for line in quote.lines],
        adjustments=[replace(adjustment) for adjustment in quote.adjustments],
        options=options,
    )

    for stage in pipeline:
        if not stage.is_enabled(options):
            continue
        blocked_by = [name for name in stage.excluded_by if name in context.applied]
        if blocked_by:
            logger.debug("Discount stage %s skipped, excluded by %s", stage.name, blocked_by)
            continue
        stage.apply(context)
        context.applied.append(stage.name)
        logger.debug("Discount stage %s applied", stage.name)

    result = replace(quote, lines=context.lines, adjustments=context.adjustments)
    result.due_today = round2(result.section_total("due"))
    result.recurring_monthly = round2(result.section_total("recurring"))
    result.prepaid_monthly_equivalent = round2(
        sum(line.amount for line in result.lines_in("recurring") if line.amortized)
    )
    return result


__all__ = [
    "BundleInstallDiscount",
    "CouponDiscount",
    "DISCOUNT_PIPELINE",
    "DiscountContext",
    "DiscountStage",
    "OrderThresholdInstallDiscount",
    "SeasonalPromoDiscount",
    "apply_discounts",
]
