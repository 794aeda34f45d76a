"""Analytics metadata derived from a finished order quote."""
from __future__ import annotations

from .catalog import SEASONAL_PROMO
from .domain_models import OrderMetadata, Quote, SeasonalPromo, StreamingInput, TvInput

ACQUISITION_CHANNELS = ("wizard", "phone", "manual")


def build_order_metadata(
    tv_input: TvInput | None,
    streaming_input: StreamingInput | None,
    quote: Quote,
    channel: str = "wizard",
    promo: SeasonalPromo = SEASONAL_PROMO,
) -> OrderMetadata:
    """Classify an order for analytics.

    The billing cycle is ``yearly`` when the streaming part is billed
    yearly, ``multi-month`` when the TV part runs longer than a month, and
    ``monthly`` otherwise. The promo is reported when any line reason
    carries the promo marker.
    """

    if channel not in ACQUISITION_CHANNELS:
        raise ValueError(f"Unknown acquisition channel: {channel!r}")

    plan_ids = [item.plan_id for item in (tv_input, streaming_input) if item is not None]

    installation = None
    if tv_input is not None:
        installation = tv_input.installation
    elif streaming_input is not None:
        installation = streaming_input.installation

    billing_cycle = "monthly"
    if streaming_input is not None and streaming_input.billing == "yearly":
        billing_cycle = "yearly"
    elif tv_input is not None and tv_input.duration_months > 1:
        billing_cycle = "multi-month"

    promo_applied = None
    if any(line.reason and promo.marker in line.reason for line in quote.lines):
        promo_applied = promo.id

    return OrderMetadata(
        plan_id="+".join(plan_ids),
        billing_cycle=billing_cycle,
        has_bundle=tv_input is not None and streaming_input is not None,
        has_firestick=installation is not None and installation.type == "firestick",
        install_type=installation.type if installation is not None else "remote",
        total_due_today=quote.due_today,
        recurring_monthly=quote.recurring_monthly,
        acquisition_channel=channel,
        country_code=tv_input.country_code if tv_input is not None else None,
        country_tier=tv_input.country_tier if tv_input is not None else None,
        promo_applied=promo_applied,
    )


__all__ = ["ACQUISITION_CHANNELS", "build_order_metadata"]
