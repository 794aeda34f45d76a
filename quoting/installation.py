"""Installation, device and shipping costs for one installation selection."""
from __future__ import annotations

import logging

from .catalog import INSTALLATION_PRICES, SHIPPING, CatalogLookupError, get_firestick
from .domain_models import InstallationCostResult, InstallationSelection, LineItem
from .formatting import format_threshold

logger = logging.getLogger(__name__)


def compute_installation_cost(
    selection: InstallationSelection,
    device_subtotal: float | None = None,
) -> InstallationCostResult:
    """Price an installation selection into due-today line items.

    ``remote`` and ``callout`` are flat fees with a higher standalone rate.
    ``firestick`` ships a pre-configured device (install included) and adds a
    shipping line that is waived when ``device_subtotal`` (defaults to the
    device price) is above the free-shipping threshold.
    """

    line_items: list[LineItem] = []
    install = 0.0
    device = 0.0
    shipping = 0.0

    if selection.type == "remote":
        install = INSTALLATION_PRICES["remote_standalone" if selection.standalone else "remote"]
        line_items.append(
            LineItem(
                key="installation-remote",
                label="Remote Setup (Standalone)" if selection.standalone else "Remote Installation",
                amount=install,
                section="due",
                type="installation",
            )
        )
    elif selection.type == "callout":
        install = INSTALLATION_PRICES["callout_standalone" if selection.standalone else "callout"]
        line_items.append(
            LineItem(
                key="installation-callout",
                label="Callout Visit (Standalone)" if selection.standalone else "Callout Visit",
                amount=install,
                section="due",
                type="installation",
            )
        )
    elif selection.type == "firestick":
        stick = get_firestick(selection.firestick_id)
        device = stick.price
        line_items.append(
            LineItem(
                key="device-firestick",
                label=stick.label,
                amount=device,
                section="due",
                type="device",
            )
        )

        subtotal = device if device_subtotal is None else device_subtotal
        if subtotal > SHIPPING["free_threshold"]:
            line_items.append(
                LineItem(
                    key="shipping",
                    label="Shipping",
                    amount=0.0,
                    section="due",
                    type="shipping",
                    original_amount=SHIPPING["standard_rate"],
                    reason=f"Free over {format_threshold(SHIPPING['free_threshold'])}",
                )
            )
        else:
            shipping = SHIPPING["standard_rate"]
            line_items.append(
                LineItem(
                    key="shipping",
                    label="Shipping",
                    amount=shipping,
                    section="due",
                    type="shipping",
                )
            )
    else:
        raise CatalogLookupError("installation type", selection.type)

    logger.debug(
        "Installation %s priced: install=%s device=%s shipping=%s",
        selection.type,
        install,
        device,
        shipping,
    )
    return InstallationCostResult(
        install=install, device=device, shipping=shipping, line_items=line_items
    )


__all__ = ["compute_installation_cost"]
