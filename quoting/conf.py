"""App-level settings with defaults taken from the catalog."""
from __future__ import annotations

from django.conf import settings

from .catalog import ORDER_THRESHOLD_FREE_INSTALL


def seasonal_promo_enabled() -> bool:
    return bool(getattr(settings, "QUOTING_SEASONAL_PROMO_ENABLED", True))


def order_threshold_free_install() -> float | None:
    """Due-today subtotal that unlocks the installation discount; ``None`` disables it."""
    return getattr(settings, "QUOTING_ORDER_THRESHOLD_FREE_INSTALL", ORDER_THRESHOLD_FREE_INSTALL)
