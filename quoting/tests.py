import datetime as dt
import json

from django.template import Context, Template
from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from .catalog import (
    SEASONAL_PROMO,
    STREAMING_PLANS,
    TV_DURATION_DISCOUNTS,
    TV_PLANS,
    CatalogLookupError,
    get_country,
    get_firestick,
)
from .discounts import DISCOUNT_PIPELINE, apply_discounts
from .domain_models import (
    InstallationSelection,
    LineItem,
    MergeOptions,
    Quote,
    StreamingInput,
    TvInput,
)
from .formatting import format_currency, quote_to_dict, round2
from .input_parsing import parse_streaming_input, parse_tv_input
from .installation import compute_installation_cost
from .metadata import build_order_metadata
from .pricing_engine import (
    build_recurring_label,
    compute_order_quote,
    compute_streaming_quote,
    compute_tv_quote,
    get_default_merge_options,
    get_seasonal_promo_options,
    merge_quotes,
)

DURING_PROMO = dt.datetime(2025, 12, 1, 12, 0, tzinfo=dt.timezone.utc)
AFTER_PROMO = dt.datetime(2026, 1, 15, 12, 0, tzinfo=dt.timezone.utc)


def tv_input(**overrides):
    values = {
        "plan_id": "tv-single",
        "country_tier": "cheap",
        "is_pro": False,
        "duration_months": 1,
        "installation": InstallationSelection(type="remote"),
    }
    values.update(overrides)
    return TvInput(**values)


def streaming_input(**overrides):
    values = {
        "plan_id": "cinema-lite",
        "billing": "monthly",
        "vpn_enabled": False,
        "installation": InstallationSelection(type="remote"),
    }
    values.update(overrides)
    return StreamingInput(**values)


def lines_by_key(quote):
    return {line.key: line for line in quote.lines}


class QuoteAssertionsMixin:
    def assertQuoteConsistent(self, quote):
        self.assertEqual(quote.due_today, round2(quote.section_total("due")))
        self.assertEqual(quote.recurring_monthly, round2(quote.section_total("recurring")))
        for line in quote.lines:
            if line.original_amount is not None:
                self.assertLessEqual(line.amount, line.original_amount)
            self.assertGreaterEqual(line.amount, 0)


class CatalogTests(SimpleTestCase):
    def test_duration_discounts_are_non_decreasing(self):
        months = sorted(TV_DURATION_DISCOUNTS)
        self.assertEqual(months, [1, 3, 6, 12])
        discounts = [TV_DURATION_DISCOUNTS[m] for m in months]
        self.assertTrue(all(a <= b for a, b in zip(discounts, discounts[1:])))

    def test_yearly_streaming_price_is_cheaper_than_twelve_months(self):
        for plan in STREAMING_PLANS:
            self.assertLess(plan.yearly_price, plan.monthly_price * 12)

    def test_default_firestick_is_recommended_4k(self):
        stick = get_firestick()
        self.assertEqual(stick.id, "4k")
        self.assertEqual(stick.price, 84.99)

    def test_unknown_firestick_raises(self):
        with self.assertRaises(CatalogLookupError) as ctx:
            get_firestick("fire-tv-omni")
        self.assertEqual(ctx.exception.kind, "firestick")
        self.assertEqual(ctx.exception.identifier, "fire-tv-omni")

    def test_country_tiers(self):
        self.assertEqual(get_country("uk").tier, "rich")
        self.assertEqual(get_country("pl").tier, "cheap")

    def test_each_plan_has_one_price_per_tier_and_level(self):
        plan = TV_PLANS[0]
        self.assertEqual(plan.monthly_price("cheap", False), plan.cheap_monthly_lite)
        self.assertEqual(plan.monthly_price("cheap", True), plan.cheap_monthly_pro)
        self.assertEqual(plan.monthly_price("rich", False), plan.rich_monthly_lite)
        self.assertEqual(plan.monthly_price("rich", True), plan.rich_monthly_pro)

    def test_promo_is_live_only_before_end_date(self):
        self.assertTrue(SEASONAL_PROMO.is_live(DURING_PROMO))
        self.assertFalse(SEASONAL_PROMO.is_live(SEASONAL_PROMO.end_date))
        self.assertFalse(SEASONAL_PROMO.is_live(AFTER_PROMO))


class FormattingTests(SimpleTestCase):
    def test_round2_rounds_half_up(self):
        self.assertEqual(round2(2.675), 2.68)
        self.assertEqual(round2(11.99 * 0.85), 10.19)
        self.assertEqual(round2(69.99 * 0.5), 35.0)

    def test_format_currency(self):
        self.assertEqual(format_currency(5), "£5.00")
        self.assertEqual(format_currency(10.1915), "£10.19")
        self.assertEqual(format_currency(0), "£0.00")

    def test_quote_to_dict_omits_unset_fields(self):
        data = quote_to_dict(compute_tv_quote(tv_input()))
        self.assertNotIn("recurring_label", data)
        self.assertEqual(data["source"], "tv")
        self.assertNotIn("reason", data["lines"][0])
        self.assertNotIn("amortized", data["lines"][0])
        self.assertNotIn("prepaid_monthly_equivalent", data)
        self.assertEqual(data["lines"][0]["key"], "tv-app-fee")


class InstallationCostTests(SimpleTestCase):
    def test_remote_bundled_and_standalone(self):
        result = compute_installation_cost(InstallationSelection(type="remote"))
        self.assertEqual(result.install, 30.0)
        self.assertEqual(result.line_items[0].key, "installation-remote")
        self.assertEqual(result.line_items[0].label, "Remote Installation")

        standalone = compute_installation_cost(
            InstallationSelection(type="remote", standalone=True)
        )
        self.assertEqual(standalone.install, 45.0)
        self.assertEqual(standalone.line_items[0].label, "Remote Setup (Standalone)")

    def test_callout(self):
        result = compute_installation_cost(InstallationSelection(type="callout"))
        self.assertEqual(result.install, 69.99)
        self.assertEqual(result.line_items[0].key, "installation-callout")
        self.assertEqual(result.line_items[0].type, "installation")

        standalone = compute_installation_cost(
            InstallationSelection(type="callout", standalone=True)
        )
        self.assertEqual(standalone.install, 89.99)

    def test_default_firestick_pays_shipping(self):
        result = compute_installation_cost(InstallationSelection(type="firestick"))

        self.assertEqual(result.install, 0)
        self.assertEqual(result.device, 84.99)
        self.assertEqual(result.shipping, 5.99)
        self.assertEqual([line.key for line in result.line_items], ["device-firestick", "shipping"])
        self.assertEqual(result.line_items[0].label, "Fire TV Stick 4K")
        self.assertIsNone(result.line_items[1].reason)

    def test_device_at_threshold_still_pays_shipping(self):
        result = compute_installation_cost(
            InstallationSelection(type="firestick", firestick_id="4k-max")
        )
        self.assertEqual(result.device, 99.99)
        self.assertEqual(result.shipping, 5.99)

    def test_shipping_waived_over_threshold(self):
        result = compute_installation_cost(
            InstallationSelection(type="firestick", firestick_id="cube")
        )
        shipping = result.line_items[1]

        self.assertEqual(result.shipping, 0)
        self.assertEqual(shipping.amount, 0)
        self.assertEqual(shipping.original_amount, 5.99)
        self.assertEqual(shipping.reason, "Free over £100")

    def test_device_subtotal_override(self):
        result = compute_installation_cost(
            InstallationSelection(type="firestick"), device_subtotal=150
        )
        self.assertEqual(result.shipping, 0)

    def test_unknown_firestick_is_rejected(self):
        with self.assertRaises(CatalogLookupError):
            compute_installation_cost(InstallationSelection(type="firestick", firestick_id="nope"))

    def test_unknown_installation_type_is_rejected(self):
        with self.assertRaises(CatalogLookupError):
            compute_installation_cost(InstallationSelection(type="drone"))


class TvQuoteTests(QuoteAssertionsMixin, SimpleTestCase):
    def test_single_month_remote(self):
        quote = compute_tv_quote(tv_input())
        lines = lines_by_key(quote)

        self.assertEqual(
            [line.key for line in quote.lines],
            ["tv-app-fee", "tv-first-month", "installation-remote"],
        )
        self.assertEqual(lines["tv-app-fee"].amount, 4.99)
        self.assertEqual(lines["tv-first-month"].amount, 11.99)
        self.assertIsNone(lines["tv-first-month"].original_amount)
        self.assertIsNone(lines["tv-first-month"].reason)
        self.assertEqual(lines["installation-remote"].amount, 30.0)
        self.assertEqual(quote.due_today, 46.98)
        self.assertEqual(quote.recurring_monthly, 0)
        self.assertIsNone(quote.recurring_label)
        self.assertEqual(quote.source, "tv")
        self.assertQuoteConsistent(quote)

    def test_twelve_month_commitment(self):
        quote = compute_tv_quote(tv_input(duration_months=12))
        lines = lines_by_key(quote)

        first_month = lines["tv-first-month"]
        self.assertEqual(first_month.amount, 10.19)
        self.assertEqual(first_month.original_amount, 11.99)
        self.assertEqual(first_month.reason, "15% off (12mo commitment)")
        self.assertEqual(lines["tv-recurring"].amount, 10.19)
        self.assertEqual(lines["tv-recurring"].section, "recurring")
        self.assertEqual(quote.recurring_label, "for next 11 months")
        self.assertEqual(quote.recurring_monthly, 10.19)
        self.assertEqual(quote.due_today, 45.18)
        self.assertQuoteConsistent(quote)

    def test_effective_monthly_never_increases_with_duration(self):
        for plan in TV_PLANS:
            for tier in ("cheap", "rich"):
                for is_pro in (False, True):
                    prices = [
                        lines_by_key(
                            compute_tv_quote(
                                tv_input(
                                    plan_id=plan.id,
                                    country_tier=tier,
                                    is_pro=is_pro,
                                    duration_months=months,
                                )
                            )
                        )["tv-first-month"].amount
                        for months in (1, 3, 6, 12)
                    ]
                    self.assertEqual(prices, sorted(prices, reverse=True))

    def test_rich_tier_pro_price(self):
        quote = compute_tv_quote(tv_input(country_tier="rich", is_pro=True))
        first_month = lines_by_key(quote)["tv-first-month"]
        self.assertEqual(first_month.amount, 18.99)
        self.assertEqual(first_month.label, "TV Global Pro – first month")

    def test_app_fee_is_never_discounted(self):
        quote = compute_tv_quote(tv_input(duration_months=6))
        fee = lines_by_key(quote)["tv-app-fee"]
        self.assertEqual(fee.amount, 4.99)
        self.assertIsNone(fee.original_amount)

    def test_firestick_installation_adds_device_and_shipping(self):
        quote = compute_tv_quote(
            tv_input(installation=InstallationSelection(type="firestick"))
        )
        self.assertEqual(quote.due_today, round2(4.99 + 11.99 + 84.99 + 5.99))
        self.assertQuoteConsistent(quote)

    def test_unknown_plan_raises(self):
        with self.assertRaises(CatalogLookupError) as ctx:
            compute_tv_quote(tv_input(plan_id="tv-mars"))
        self.assertIn("tv-mars", str(ctx.exception))

    def test_unsupported_duration_raises(self):
        with self.assertRaises(CatalogLookupError):
            compute_tv_quote(tv_input(duration_months=2))

    def test_unknown_tier_raises(self):
        with self.assertRaises(CatalogLookupError):
            compute_tv_quote(tv_input(country_tier="premium"))


class StreamingQuoteTests(QuoteAssertionsMixin, SimpleTestCase):
    def test_monthly_with_vpn(self):
        quote = compute_streaming_quote(streaming_input(vpn_enabled=True))

        due = {line.key: line.amount for line in quote.lines_in("due")}
        recurring = {line.key: line.amount for line in quote.lines_in("recurring")}
        self.assertEqual(
            due,
            {"streaming-first-month": 14.99, "streaming-vpn": 2.99, "installation-remote": 30.0},
        )
        self.assertEqual(recurring, {"streaming-recurring": 14.99, "streaming-vpn-recurring": 2.99})
        self.assertEqual(quote.due_today, 47.98)
        self.assertEqual(quote.recurring_monthly, 17.98)
        self.assertEqual(quote.recurring_label, "billed monthly")
        self.assertEqual(quote.source, "streaming")
        self.assertQuoteConsistent(quote)

    def test_vpn_not_charged_when_included(self):
        quote = compute_streaming_quote(streaming_input(plan_id="cinema-pro", vpn_enabled=True))
        self.assertFalse(any("vpn" in line.key for line in quote.lines))
        self.assertEqual(quote.due_today, 49.99)
        self.assertEqual(quote.recurring_monthly, 19.99)

    def test_yearly_billing(self):
        quote = compute_streaming_quote(streaming_input(billing="yearly"))
        yearly = lines_by_key(quote)["streaming-yearly"]

        self.assertEqual(yearly.amount, 149.99)
        self.assertEqual(yearly.original_amount, 179.88)
        self.assertEqual(yearly.reason, "Save £29.89")
        self.assertEqual(quote.due_today, 179.99)
        self.assertEqual(quote.recurring_monthly, 12.5)
        self.assertEqual(quote.recurring_label, "billed annually")
        self.assertEqual(quote.prepaid_monthly_equivalent, 12.5)
        self.assertTrue(lines_by_key(quote)["streaming-yearly-recurring"].amortized)
        self.assertQuoteConsistent(quote)

    def test_monthly_billing_has_no_prepaid_share(self):
        quote = compute_streaming_quote(streaming_input())
        self.assertEqual(quote.prepaid_monthly_equivalent, 0)
        self.assertFalse(any(line.amortized for line in quote.lines))

    def test_yearly_vpn_is_billed_at_twelve_monthly_rates(self):
        quote = compute_streaming_quote(
            streaming_input(
                billing="yearly",
                vpn_enabled=True,
                installation=InstallationSelection(type="firestick", firestick_id="cube"),
            )
        )
        lines = lines_by_key(quote)
        subscription_due = lines["streaming-yearly"].amount + lines["streaming-vpn-yearly"].amount

        self.assertEqual(lines["streaming-vpn-yearly"].amount, 35.88)
        self.assertEqual(quote.recurring_monthly, round2(subscription_due / 12))
        self.assertEqual(quote.recurring_monthly, 15.49)
        self.assertEqual(quote.due_today, round2(149.99 + 35.88 + 189.99))
        self.assertQuoteConsistent(quote)

    def test_unknown_plan_raises(self):
        with self.assertRaises(CatalogLookupError):
            compute_streaming_quote(streaming_input(plan_id="cinema-max"))

    def test_unknown_billing_raises(self):
        with self.assertRaises(ValueError):
            compute_streaming_quote(streaming_input(billing="weekly"))


class MergeQuotesTests(QuoteAssertionsMixin, SimpleTestCase):
    def setUp(self):
        self.tv_quote = compute_tv_quote(tv_input())
        self.streaming_quote = compute_streaming_quote(streaming_input())

    def test_no_quotes_gives_empty_quote(self):
        quote = merge_quotes([], MergeOptions())
        self.assertEqual(quote.due_today, 0)
        self.assertEqual(quote.recurring_monthly, 0)
        self.assertEqual(quote.lines, [])
        self.assertEqual(quote.adjustments, [])

    def test_single_quote_passes_through_discounts(self):
        quote = merge_quotes([self.tv_quote], MergeOptions())
        self.assertEqual(quote.due_today, 46.98)
        self.assertEqual(quote.source, "tv")

    def test_bundle_waives_remote_installation(self):
        quote = merge_quotes(
            [self.tv_quote, self.streaming_quote],
            MergeOptions(waive_install_for_bundle=True),
        )
        installs = [line for line in quote.lines if line.key == "installation-remote"]

        self.assertEqual(len(installs), 2)
        for line in installs:
            self.assertEqual(line.amount, 0)
            self.assertEqual(line.original_amount, 30.0)
            self.assertIn("Bundle TV + HUB", line.reason)
        self.assertEqual(quote.due_today, round2(4.99 + 11.99 + 14.99))
        self.assertEqual(quote.recurring_monthly, 14.99)
        self.assertEqual(quote.recurring_label, "billed monthly")
        self.assertIsNone(quote.source)
        self.assertQuoteConsistent(quote)

    def test_bundle_halves_callout(self):
        tv_quote = compute_tv_quote(tv_input(installation=InstallationSelection(type="callout")))
        quote = merge_quotes(
            [tv_quote, self.streaming_quote], MergeOptions(waive_install_for_bundle=True)
        )
        callout = lines_by_key(quote)["installation-callout"]

        self.assertEqual(callout.amount, 35.0)
        self.assertEqual(callout.original_amount, 69.99)
        self.assertEqual(callout.reason, "Bundle TV + HUB (-50%)")

    def test_bundle_suppresses_threshold_discount(self):
        quote = merge_quotes(
            [self.tv_quote, self.streaming_quote],
            MergeOptions(waive_install_for_bundle=True, order_threshold_free_install=40),
        )
        reasons = [line.reason for line in quote.lines if line.type == "installation"]
        self.assertTrue(all("Order over" not in reason for reason in reasons))

    def test_threshold_discount_without_bundle(self):
        quote = merge_quotes([self.tv_quote], MergeOptions(order_threshold_free_install=40))
        install = lines_by_key(quote)["installation-remote"]

        self.assertEqual(install.amount, 0)
        self.assertEqual(install.original_amount, 30.0)
        self.assertEqual(install.reason, "Order over £40")
        self.assertEqual(quote.due_today, 16.98)
        self.assertQuoteConsistent(quote)

    def test_threshold_discount_halves_callout(self):
        tv_quote = compute_tv_quote(tv_input(installation=InstallationSelection(type="callout")))
        quote = merge_quotes([tv_quote], MergeOptions(order_threshold_free_install=40))
        callout = lines_by_key(quote)["installation-callout"]

        self.assertEqual(callout.amount, 35.0)
        self.assertEqual(callout.reason, "Order over £40 (-50%)")

    def test_threshold_not_reached(self):
        quote = Quote(
            due_today=30.0,
            recurring_monthly=0,
            lines=[
                LineItem(
                    key="installation-remote",
                    label="Remote Setup (Standalone)",
                    amount=30.0,
                    section="due",
                    type="installation",
                )
            ],
        )
        result = merge_quotes([quote], MergeOptions(order_threshold_free_install=40))
        self.assertEqual(result.due_today, 30.0)
        self.assertIsNone(result.lines[0].reason)

    def threshold_quote(self, fee):
        lines = [
            LineItem(
                key="installation-remote",
                label="Remote Setup (Standalone)",
                amount=30.0,
                section="due",
                type="installation",
            ),
            LineItem(key="tv-app-fee", label="App fee", amount=fee, section="due", type="fee"),
        ]
        return Quote(due_today=round2(30.0 + fee), recurring_monthly=0, lines=lines)

    def test_threshold_is_inclusive(self):
        result = merge_quotes(
            [self.threshold_quote(10.0)], MergeOptions(order_threshold_free_install=40)
        )
        install = lines_by_key(result)["installation-remote"]

        self.assertEqual(install.amount, 0)
        self.assertEqual(install.original_amount, 30.0)
        self.assertEqual(install.reason, "Order over £40")
        self.assertEqual(result.due_today, 10.0)
        self.assertQuoteConsistent(result)

    def test_threshold_missed_by_one_penny(self):
        result = merge_quotes(
            [self.threshold_quote(9.99)], MergeOptions(order_threshold_free_install=40)
        )
        install = lines_by_key(result)["installation-remote"]

        self.assertEqual(install.amount, 30.0)
        self.assertIsNone(install.original_amount)
        self.assertIsNone(install.reason)
        self.assertEqual(result.due_today, 39.99)

    def test_threshold_ignores_float_noise_in_subtotal(self):
        # ten 0.1 amounts sum to 0.9999999999999999
        lines = [
            LineItem(
                key="installation-remote",
                label="Remote Setup",
                amount=0.0,
                section="due",
                type="installation",
            )
        ] + [
            LineItem(key=f"fee-{index}", label="Fee", amount=0.1, section="due", type="fee")
            for index in range(10)
        ]
        result = merge_quotes(
            [Quote(due_today=1.0, recurring_monthly=0, lines=lines)],
            MergeOptions(order_threshold_free_install=1),
        )
        self.assertEqual(lines_by_key(result)["installation-remote"].reason, "Order over £1")

    def test_seasonal_promo_compounds_on_duration_discount(self):
        tv_quote = compute_tv_quote(tv_input(duration_months=12))
        quote = merge_quotes(
            [tv_quote],
            MergeOptions(seasonal_promo_active=True, seasonal_promo_percent_first_month=0.2),
        )
        lines = lines_by_key(quote)
        first_month = lines["tv-first-month"]

        self.assertEqual(first_month.amount, 8.15)
        self.assertEqual(first_month.original_amount, 11.99)
        self.assertEqual(first_month.reason, "15% off (12mo commitment), Christmas -20%")
        self.assertEqual(lines["tv-recurring"].amount, 10.19)
        self.assertEqual(quote.due_today, 43.14)
        self.assertQuoteConsistent(quote)

    def test_seasonal_promo_sets_original_amount(self):
        quote = merge_quotes(
            [self.tv_quote, self.streaming_quote],
            MergeOptions(seasonal_promo_active=True, seasonal_promo_percent_first_month=0.2),
        )
        lines = lines_by_key(quote)

        self.assertEqual(lines["tv-first-month"].amount, 9.59)
        self.assertEqual(lines["tv-first-month"].original_amount, 11.99)
        self.assertEqual(lines["tv-first-month"].reason, "Christmas -20%")
        self.assertEqual(lines["streaming-first-month"].amount, 11.99)
        self.assertEqual(lines["streaming-recurring"].amount, 14.99)

    def test_seasonal_promo_inactive_does_nothing(self):
        quote = merge_quotes(
            [self.tv_quote],
            MergeOptions(seasonal_promo_active=False, seasonal_promo_percent_first_month=0.2),
        )
        self.assertEqual(lines_by_key(quote)["tv-first-month"].amount, 11.99)

    def test_seasonal_promo_clamps_at_zero(self):
        quote = merge_quotes(
            [self.tv_quote],
            MergeOptions(seasonal_promo_active=True, seasonal_promo_percent_first_month=1.5),
        )
        self.assertEqual(lines_by_key(quote)["tv-first-month"].amount, 0)
        self.assertQuoteConsistent(quote)

    def test_coupon_adds_adjustment(self):
        quote = merge_quotes([self.tv_quote], MergeOptions(coupon_code="save10"))

        self.assertEqual(len(quote.adjustments), 1)
        adjustment = quote.adjustments[0]
        self.assertEqual(adjustment.key, "coupon-save10")
        self.assertEqual(adjustment.label, "Promo code SAVE10")
        self.assertEqual(adjustment.amount, -1.2)
        self.assertEqual(adjustment.section, "due")
        self.assertEqual(quote.due_today, 45.78)
        self.assertQuoteConsistent(quote)

    def test_coupon_uses_discounted_subscription_amounts(self):
        quote = merge_quotes(
            [self.tv_quote],
            MergeOptions(
                coupon_code="xmas",
                seasonal_promo_active=True,
                seasonal_promo_percent_first_month=0.2,
            ),
        )
        self.assertEqual(quote.adjustments[0].amount, -0.96)

    def test_blank_coupon_is_ignored(self):
        quote = merge_quotes([self.tv_quote], MergeOptions(coupon_code="   "))
        self.assertEqual(quote.adjustments, [])

    def test_merge_does_not_mutate_inputs(self):
        merge_quotes(
            [self.tv_quote, self.streaming_quote],
            MergeOptions(
                waive_install_for_bundle=True,
                seasonal_promo_active=True,
                seasonal_promo_percent_first_month=0.2,
                coupon_code="save10",
            ),
        )
        install = lines_by_key(self.tv_quote)["installation-remote"]
        self.assertEqual(install.amount, 30.0)
        self.assertIsNone(install.original_amount)
        self.assertEqual(lines_by_key(self.tv_quote)["tv-first-month"].amount, 11.99)
        self.assertEqual(self.tv_quote.adjustments, [])

    def test_merged_recurring_includes_yearly_equivalent(self):
        quote = merge_quotes(
            [
                compute_tv_quote(tv_input(duration_months=12)),
                compute_streaming_quote(streaming_input(billing="yearly")),
            ],
            MergeOptions(),
        )
        self.assertEqual(quote.recurring_monthly, round2(10.19 + 12.5))
        self.assertEqual(quote.recurring_label, "for next 11 months")
        self.assertEqual(quote.prepaid_monthly_equivalent, 12.5)
        self.assertEqual(
            round2(quote.recurring_monthly - quote.prepaid_monthly_equivalent), 10.19
        )
        self.assertQuoteConsistent(quote)

    def test_pipeline_order(self):
        self.assertEqual(
            [stage.name for stage in DISCOUNT_PIPELINE],
            ["bundle", "order-threshold", "seasonal-promo", "coupon"],
        )

    def test_apply_discounts_recomputes_totals(self):
        stale = Quote(
            due_today=999.0,
            recurring_monthly=999.0,
            lines=list(self.tv_quote.lines),
        )
        quote = apply_discounts(stale, MergeOptions())
        self.assertEqual(quote.due_today, 46.98)
        self.assertEqual(quote.recurring_monthly, 0)


class RecurringLabelTests(SimpleTestCase):
    def test_labels(self):
        def quote(label):
            return Quote(due_today=0, recurring_monthly=0, recurring_label=label)

        self.assertIsNone(build_recurring_label([quote(None), quote(None)]))
        self.assertEqual(build_recurring_label([quote(None), quote("billed monthly")]), "billed monthly")
        self.assertEqual(
            build_recurring_label([quote("billed monthly"), quote("billed annually")]),
            "mixed billing",
        )
        self.assertEqual(
            build_recurring_label([quote("for next 5 months"), quote("billed monthly")]),
            "for next 5 months",
        )
        self.assertEqual(
            build_recurring_label([quote("billed monthly"), quote("billed monthly")]),
            "billed monthly",
        )


class OrderQuoteTests(QuoteAssertionsMixin, SimpleTestCase):
    def test_promo_options_follow_clock(self):
        self.assertEqual(
            get_seasonal_promo_options(DURING_PROMO),
            {"seasonal_promo_active": True, "seasonal_promo_percent_first_month": 0.2},
        )
        self.assertEqual(
            get_seasonal_promo_options(AFTER_PROMO),
            {"seasonal_promo_active": False, "seasonal_promo_percent_first_month": None},
        )

    def test_default_merge_options(self):
        options = get_default_merge_options(True, True, coupon_code="", now=AFTER_PROMO)
        self.assertTrue(options.waive_install_for_bundle)
        self.assertEqual(options.order_threshold_free_install, 40)
        self.assertFalse(options.seasonal_promo_active)
        self.assertIsNone(options.coupon_code)

        disabled = get_default_merge_options(True, False, now=DURING_PROMO, promo_enabled=False)
        self.assertFalse(disabled.waive_install_for_bundle)
        self.assertFalse(disabled.seasonal_promo_active)

    def test_bundle_during_promo(self):
        quote = compute_order_quote(tv_input(), streaming_input(), now=DURING_PROMO)
        lines = lines_by_key(quote)

        self.assertEqual(lines["tv-first-month"].amount, 9.59)
        self.assertEqual(lines["streaming-first-month"].amount, 11.99)
        self.assertEqual(quote.due_today, round2(4.99 + 9.59 + 11.99))
        self.assertEqual(quote.recurring_monthly, 14.99)
        self.assertQuoteConsistent(quote)

    def test_same_order_after_promo_ends(self):
        quote = compute_order_quote(tv_input(), None, now=AFTER_PROMO)

        self.assertEqual(lines_by_key(quote)["tv-first-month"].amount, 11.99)
        self.assertEqual(lines_by_key(quote)["installation-remote"].reason, "Order over £40")
        self.assertEqual(quote.due_today, 16.98)

    def test_every_public_quote_is_consistent(self):
        quotes = [
            compute_tv_quote(tv_input(duration_months=months, installation=selection))
            for months in (1, 3, 6, 12)
            for selection in (
                InstallationSelection(type="remote"),
                InstallationSelection(type="callout", standalone=True),
                InstallationSelection(type="firestick", firestick_id="cube"),
            )
        ]
        quotes += [
            compute_streaming_quote(streaming_input(plan_id=plan.id, billing=billing, vpn_enabled=True))
            for plan in STREAMING_PLANS
            for billing in ("monthly", "yearly")
        ]
        quotes += [
            compute_order_quote(tv, streaming, coupon_code="save10", now=now)
            for tv in (None, tv_input(duration_months=3))
            for streaming in (None, streaming_input(billing="yearly", vpn_enabled=True))
            for now in (DURING_PROMO, AFTER_PROMO)
        ]
        for quote in quotes:
            self.assertQuoteConsistent(quote)


class OrderMetadataTests(SimpleTestCase):
    def test_bundle_with_promo(self):
        tv = tv_input(country_code="pl")
        streaming = streaming_input()
        quote = compute_order_quote(tv, streaming, now=DURING_PROMO)

        metadata = build_order_metadata(tv, streaming, quote)

        self.assertEqual(metadata.plan_id, "tv-single+cinema-lite")
        self.assertEqual(metadata.billing_cycle, "monthly")
        self.assertTrue(metadata.has_bundle)
        self.assertFalse(metadata.has_firestick)
        self.assertEqual(metadata.install_type, "remote")
        self.assertEqual(metadata.country_code, "pl")
        self.assertEqual(metadata.country_tier, "cheap")
        self.assertEqual(metadata.total_due_today, quote.due_today)
        self.assertEqual(metadata.acquisition_channel, "wizard")
        self.assertEqual(metadata.promo_applied, "christmas-2025")

    def test_billing_cycle_classification(self):
        yearly = streaming_input(billing="yearly")
        tv = tv_input(duration_months=3)
        quote = Quote(due_today=0, recurring_monthly=0)

        self.assertEqual(build_order_metadata(tv, yearly, quote).billing_cycle, "yearly")
        self.assertEqual(build_order_metadata(tv, None, quote).billing_cycle, "multi-month")
        self.assertEqual(build_order_metadata(None, streaming_input(), quote).billing_cycle, "monthly")

    def test_firestick_and_no_promo(self):
        streaming = streaming_input(installation=InstallationSelection(type="firestick"))
        quote = compute_order_quote(None, streaming, now=AFTER_PROMO)

        metadata = build_order_metadata(None, streaming, quote, channel="phone")

        self.assertTrue(metadata.has_firestick)
        self.assertEqual(metadata.install_type, "firestick")
        self.assertFalse(metadata.has_bundle)
        self.assertIsNone(metadata.country_tier)
        self.assertIsNone(metadata.promo_applied)
        self.assertEqual(metadata.acquisition_channel, "phone")

    def test_unknown_channel_raises(self):
        with self.assertRaises(ValueError):
            build_order_metadata(tv_input(), None, Quote(0, 0), channel="fax")


class InputParsingTests(SimpleTestCase):
    def test_tv_tier_resolved_from_country(self):
        parsed = parse_tv_input(
            {
                "plan_id": "tv-single",
                "country_code": "uk",
                "is_pro": True,
                "duration_months": "6",
                "installation": {"type": "firestick", "firestick_id": "cube"},
            }
        )
        self.assertEqual(parsed.country_tier, "rich")
        self.assertEqual(parsed.country_code, "uk")
        self.assertEqual(parsed.duration_months, 6)
        self.assertEqual(parsed.installation.firestick_id, "cube")

    def test_tv_requires_tier_without_country(self):
        with self.assertRaisesMessage(ValueError, "tv.country_tier is required."):
            parse_tv_input({"plan_id": "tv-single", "installation": {"type": "remote"}})

    def test_unknown_country_code(self):
        with self.assertRaises(CatalogLookupError):
            parse_tv_input({"plan_id": "tv-single", "country_code": "xx"})

    def test_bad_duration(self):
        with self.assertRaisesMessage(ValueError, "tv.duration_months must be a whole number."):
            parse_tv_input(
                {
                    "plan_id": "tv-single",
                    "country_tier": "cheap",
                    "duration_months": "a year",
                    "installation": {"type": "remote"},
                }
            )

    def test_fractional_duration_is_rejected(self):
        for duration in (12.9, float("inf"), float("nan"), "12.5", True):
            with self.subTest(duration=duration):
                with self.assertRaisesMessage(
                    ValueError, "tv.duration_months must be a whole number."
                ):
                    parse_tv_input(
                        {
                            "plan_id": "tv-single",
                            "country_tier": "cheap",
                            "duration_months": duration,
                            "installation": {"type": "remote"},
                        }
                    )

    def test_integral_float_duration_is_accepted(self):
        parsed = parse_tv_input(
            {
                "plan_id": "tv-single",
                "country_tier": "cheap",
                "duration_months": 12.0,
                "installation": {"type": "remote"},
            }
        )
        self.assertEqual(parsed.duration_months, 12)
        self.assertIsInstance(parsed.duration_months, int)

    def test_streaming_defaults_and_validation(self):
        parsed = parse_streaming_input(
            {"plan_id": "cinema-pro", "installation": {"type": "callout", "standalone": True}}
        )
        self.assertEqual(parsed.billing, "monthly")
        self.assertFalse(parsed.vpn_enabled)
        self.assertTrue(parsed.installation.standalone)

        with self.assertRaises(ValueError):
            parse_streaming_input(
                {"plan_id": "cinema-pro", "billing": "weekly", "installation": {"type": "remote"}}
            )
        with self.assertRaisesMessage(ValueError, "streaming.installation must be an object."):
            parse_streaming_input({"plan_id": "cinema-pro"})


class TemplateFilterTests(SimpleTestCase):
    def render(self, source, **context):
        return Template("{% load quoting_extras %}" + source).render(Context(context))

    def test_currency_filter(self):
        self.assertEqual(self.render("{{ amount|currency }}", amount=10.1915), "£10.19")
        self.assertEqual(self.render("{{ amount|currency }}", amount="n/a"), "£0.00")

    def test_section_lines_and_has_discount(self):
        quote = compute_tv_quote(tv_input(duration_months=12))
        rendered = self.render(
            "{% for line in quote|section_lines:'recurring' %}{{ line.key }}{% endfor %}"
            "|{% for line in quote|section_lines:'due' %}{% if line|has_discount %}{{ line.key }}{% endif %}{% endfor %}",
            quote=quote,
        )
        self.assertEqual(rendered, "tv-recurring|tv-first-month")


@override_settings(QUOTING_SEASONAL_PROMO_ENABLED=False)
class QuoteViewTests(SimpleTestCase):
    def post_quote(self, payload):
        return self.client.post(
            reverse("quoting:quote"),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_catalog(self):
        response = self.client.get(reverse("quoting:catalog"))

        self.assertEqual(response.status_code, 200)
        catalog = response.json()["catalog"]
        self.assertEqual([plan["id"] for plan in catalog["tv_plans"]], [p.id for p in TV_PLANS])
        self.assertEqual(catalog["duration_discounts"]["12"], 0.15)
        self.assertEqual(catalog["order_threshold_free_install"], 40.0)
        self.assertFalse(catalog["seasonal_promo"]["live"])

    def test_bundle_quote(self):
        response = self.post_quote(
            {
                "tv": {
                    "plan_id": "tv-single",
                    "country_code": "pl",
                    "duration_months": 12,
                    "installation": {"type": "remote"},
                },
                "streaming": {
                    "plan_id": "cinema-lite",
                    "billing": "monthly",
                    "vpn_enabled": True,
                    "installation": {"type": "remote"},
                },
            }
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["quote"]["due_today"], 33.16)
        self.assertEqual(body["quote"]["recurring_monthly"], 28.17)
        self.assertEqual(body["quote"]["recurring_label"], "for next 11 months")
        self.assertEqual(body["formatted"]["due_today"], "£33.16")
        self.assertEqual(body["metadata"]["billing_cycle"], "multi-month")
        self.assertEqual(body["metadata"]["country_tier"], "cheap")
        self.assertTrue(body["metadata"]["has_bundle"])

    def test_coupon_quote(self):
        response = self.post_quote(
            {
                "tv": {
                    "plan_id": "tv-single",
                    "country_tier": "cheap",
                    "installation": {"type": "remote"},
                },
                "coupon_code": "save10",
                "channel": "phone",
            }
        )
        body = response.json()
        self.assertEqual(body["quote"]["adjustments"][0]["amount"], -1.2)
        self.assertEqual(body["quote"]["due_today"], 15.78)
        self.assertEqual(body["metadata"]["acquisition_channel"], "phone")

    @override_settings(QUOTING_ORDER_THRESHOLD_FREE_INSTALL=None)
    def test_threshold_can_be_disabled(self):
        response = self.post_quote(
            {"tv": {"plan_id": "tv-single", "country_tier": "cheap", "installation": {"type": "remote"}}}
        )
        self.assertEqual(response.json()["quote"]["due_today"], 46.98)

    def test_missing_products(self):
        response = self.post_quote({"tv": None, "streaming": None})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_malformed_json(self):
        response = self.client.post(
            reverse("quoting:quote"), data="{not json", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)

    def test_non_finite_duration(self):
        # json.loads accepts the Infinity and NaN literals
        for literal in ("Infinity", "-Infinity", "NaN"):
            with self.subTest(literal=literal):
                response = self.client.post(
                    reverse("quoting:quote"),
                    data=(
                        '{"tv": {"plan_id": "tv-single", "country_tier": "cheap", '
                        f'"duration_months": {literal}, "installation": {{"type": "remote"}}}}}}'
                    ),
                    content_type="application/json",
                )
                self.assertEqual(response.status_code, 400)
                self.assertFalse(response.json()["success"])

    def test_fractional_duration(self):
        response = self.post_quote(
            {
                "tv": {
                    "plan_id": "tv-single",
                    "country_tier": "cheap",
                    "duration_months": 12.9,
                    "installation": {"type": "remote"},
                }
            }
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("tv.duration_months", response.json()["error"])

    def test_summary_html(self):
        response = self.post_quote(
            {
                "tv": {
                    "plan_id": "tv-single",
                    "country_code": "pl",
                    "duration_months": 12,
                    "installation": {"type": "remote"},
                },
                "streaming": {
                    "plan_id": "cinema-lite",
                    "billing": "yearly",
                    "installation": {"type": "remote"},
                },
            }
        )
        html = response.json()["summary_html"]

        self.assertIn('data-key="tv-first-month"', html)
        self.assertIn("<s>£11.99</s>", html)
        self.assertIn("Bundle TV + HUB", html)
        self.assertIn("£22.69 / month", html)
        self.assertIn("Includes £12.50 / month already paid upfront.", html)
        self.assertEqual(response.json()["quote"]["prepaid_monthly_equivalent"], 12.5)

    def test_unknown_plan(self):
        response = self.post_quote(
            {"streaming": {"plan_id": "cinema-max", "installation": {"type": "remote"}}}
        )
        self.assertEqual(response.status_code, 404)
        self.assertIn("cinema-max", response.json()["error"])

    def test_quote_requires_post(self):
        response = self.client.get(reverse("quoting:quote"))
        self.assertEqual(response.status_code, 405)
