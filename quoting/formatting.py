"""Money rounding, currency formatting and quote serialization."""
from __future__ import annotations

from dataclasses import asdict
from decimal import ROUND_HALF_UP, Decimal

from .domain_models import LineItem, Quote

CURRENCY_SYMBOL = "£"

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to 2 decimal places."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def clamp_non_negative(value: float) -> float:
    return value if value > 0 else 0.0


def format_currency(amount: float) -> str:
    return f"{CURRENCY_SYMBOL}{round2(amount):.2f}"


def format_threshold(amount: float) -> str:
    """Short form used inside reasons, e.g. ``£40`` or ``£37.50``."""
    if float(amount).is_integer():
        return f"{CURRENCY_SYMBOL}{int(amount)}"
    return format_currency(amount)


def _drop_none(data: dict) -> dict:
    return {key: value for key, value in data.items() if value is not None}


def _line_to_dict(line: LineItem) -> dict:
    data = _drop_none(asdict(line))
    if not line.amortized:
        del data["amortized"]
    return data


def quote_to_dict(quote: Quote) -> dict[str, object]:
    """Return a JSON-ready dict; optional fields are left out when unset."""
    return _drop_none(
        {
            "due_today": quote.due_today,
            "recurring_monthly": quote.recurring_monthly,
            "recurring_label": quote.recurring_label,
            "lines": [_line_to_dict(line) for line in quote.lines],
            "adjustments": [asdict(adjustment) for adjustment in quote.adjustments],
            "source": quote.source,
            "prepaid_monthly_equivalent": quote.prepaid_monthly_equivalent or None,
        }
    )


__all__ = [
    "CURRENCY_SYMBOL",
    "clamp_non_negative",
    "format_currency",
    "format_threshold",
    "quote_to_dict",
    "round2",
]
