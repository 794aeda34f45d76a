from __future__ import annotations

from django import template

from ..formatting import format_currency

register = template.Library()


@register.filter
def currency(value):
    """Render an amount as ``£0.00``; unparseable values render as zero."""
    try:
        return format_currency(float(value))
    except (TypeError, ValueError):
        return format_currency(0)


@register.filter
def section_lines(quote, section):
    if quote is None:
        return []
    return quote.lines_in(section)


@register.filter
def has_discount(line):
    return line.original_amount is not None and line.amount < line.original_amount
