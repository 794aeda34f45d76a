"""JSON endpoints for the quote wizard. Stateless: every request is priced from scratch."""
import json
import logging
from dataclasses import asdict

from django.http import JsonResponse
from django.template.loader import render_to_string
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from . import conf
from .catalog import (
    COUNTRIES,
    FIRESTICKS,
    INSTALLATION_PRICES,
    SEASONAL_PROMO,
    STREAMING_PLANS,
    TV_DURATION_DISCOUNTS,
    TV_PLANS,
    VPN_ADDON_MONTHLY_PRICE,
    CatalogLookupError,
)
from .formatting import format_currency, quote_to_dict
from .input_parsing import parse_streaming_input, parse_tv_input
from .metadata import build_order_metadata
from .pricing_engine import compute_order_quote, get_seasonal_promo_options

logger = logging.getLogger(__name__)


@require_http_methods(["GET"])
def catalog_view(request):
    promo = asdict(SEASONAL_PROMO)
    promo["end_date"] = SEASONAL_PROMO.end_date.isoformat()
    promo["live"] = conf.seasonal_promo_enabled() and bool(
        get_seasonal_promo_options()["seasonal_promo_active"]
    )

    return JsonResponse(
        {
            "success": True,
            "catalog": {
                "countries": [asdict(country) for country in COUNTRIES],
                "tv_plans": [asdict(plan) for plan in TV_PLANS],
                "streaming_plans": [asdict(plan) for plan in STREAMING_PLANS],
                "firesticks": [asdict(stick) for stick in FIRESTICKS],
                "installation_prices": INSTALLATION_PRICES,
                "duration_discounts": {
                    str(months): discount for months, discount in TV_DURATION_DISCOUNTS.items()
                },
                "vpn_addon_monthly_price": VPN_ADDON_MONTHLY_PRICE,
                "order_threshold_free_install": conf.order_threshold_free_install(),
                "seasonal_promo": promo,
            },
        }
    )


@csrf_exempt
@require_http_methods(["POST"])
def quote_view(request):
    """Price a TV and/or Streaming configuration.

    Body: ``{"tv": {...} | null, "streaming": {...} | null,
    "coupon_code": str, "channel": str}``.
    """
    try:
        data = json.loads(request.body or b"{}")
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object.")

        tv_input = parse_tv_input(data["tv"]) if data.get("tv") is not None else None
        streaming_input = (
            parse_streaming_input(data["streaming"])
            if data.get("streaming") is not None
            else None
        )
        if tv_input is None and streaming_input is None:
            raise ValueError("Select a TV plan, a Streaming plan, or both.")

        coupon_code = data.get("coupon_code") or None
        if coupon_code is not None and not isinstance(coupon_code, str):
            raise ValueError("coupon_code must be a string.")
        channel = data.get("channel") or "wizard"

        quote = compute_order_quote(
            tv_input,
            streaming_input,
            coupon_code=coupon_code,
            order_threshold=conf.order_threshold_free_install(),
            promo_enabled=conf.seasonal_promo_enabled(),
        )
        metadata = build_order_metadata(tv_input, streaming_input, quote, channel=channel)
    except CatalogLookupError as exc:
        logger.warning("Quote rejected: %s", exc)
        return JsonResponse({"success": False, "error": str(exc)}, status=404)
    except (ValueError, OverflowError) as exc:
        # json.JSONDecodeError is a ValueError too
        logger.warning("Quote rejected: %s", exc)
        return JsonResponse({"success": False, "error": str(exc)}, status=400)

    logger.info(
        "Quote served for %s: due=%.2f recurring=%.2f",
        metadata.plan_id,
        quote.due_today,
        quote.recurring_monthly,
    )
    return JsonResponse(
        {
            "success": True,
            "quote": quote_to_dict(quote),
            "formatted": {
                "due_today": format_currency(quote.due_today),
                "recurring_monthly": format_currency(quote.recurring_monthly),
            },
            "metadata": asdict(metadata),
            "summary_html": render_to_string("quoting/quote_summary.html", {"quote": quote}),
        }
    )
