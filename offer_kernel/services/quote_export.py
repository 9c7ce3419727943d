"""
Quote export -- Customer-facing record of a finished offer.

Builds the JSON document handed to document rendering and "send offer"
collaborators. Amounts come from the PriceBreakdown passed in; this module
never prices anything itself, so an exported quote always shows the same
figures as the editor.

Refuses configurations without a base package (OfferIncompleteError) rather
than producing a zero-priced document.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from offer_engines.payment_schedule import split_total
from offer_engines.pricing import PriceBreakdown, PriceLineKind
from offer_kernel.domain.clock import Clock, SystemClock
from offer_kernel.domain.configuration import OfferConfiguration
from offer_kernel.exceptions import OfferIncompleteError
from offer_kernel.logging_config import get_logger

logger = get_logger("services.quote_export")


@dataclass(frozen=True)
class CustomerInfo:
    """Contact details printed on the quote."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"name": self.name, "email": self.email, "phone": self.phone}


def _amount(money) -> str:
    return str(money.round().amount)


def build_quote_export(
    config: OfferConfiguration,
    breakdown: PriceBreakdown,
    customer: CustomerInfo | None = None,
    quote_id: str | None = None,
    clock: Clock | None = None,
) -> dict[str, Any]:
    """
    Export ``config`` priced as ``breakdown``.

    Raises:
        OfferIncompleteError: The configuration has no base package.
    """
    if not config.is_valid or not breakdown.is_valid:
        logger.warning("quote_export_refused", extra={"quote_id": quote_id})
        raise OfferIncompleteError("export")

    clock = clock or SystemClock()
    package = config.selected_package

    option_lines = {
        line.ref_id: line
        for line in breakdown.lines
        if line.kind in (PriceLineKind.OPTION, PriceLineKind.QUANTITY)
    }
    options = []
    for option in config.selected_options:
        line = option_lines.get(option.id)
        options.append({
            "id": option.id,
            "name": option.name,
            "price": _amount(line.amount) if line is not None else "0.00",
            "quantity": line.quantity if line is not None else 0,
            "negotiated": option.is_negotiable,
            "note": config.option_notes.get(option.id),
        })

    maintenance = config.selected_maintenance
    discount = config.discount
    installments = split_total(breakdown.total, config.payment_schedule)

    export = {
        "quoteId": quote_id,
        "timestamp": clock.now().isoformat(),
        "customer": customer.to_dict() if customer is not None else None,
        "currency": breakdown.currency,
        "selectedPackage": {
            "id": package.id,
            "name": package.name,
            "basePrice": _amount(package.base_price),
        },
        "selectedOptions": options,
        "selectedMaintenance": (
            {
                "id": maintenance.id,
                "name": maintenance.name,
                "monthlyPrice": _amount(breakdown.recurring_monthly),
            }
            if maintenance is not None
            else None
        ),
        "extraPages": config.extra_pages,
        "contentPages": config.content_pages,
        "customLineItems": [
            {"id": item.id, "name": item.name, "price": _amount(item.price)}
            for item in config.custom_line_items
        ],
        "discount": {
            "type": discount.type.value if discount.type is not None else None,
            "value": str(discount.value),
        },
        "paymentSchedule": config.payment_schedule.value,
        "installments": [
            {"sequence": i.sequence, "label": i.label, "amount": str(i.amount.amount)}
            for i in installments
        ],
        "scopeDescription": config.scope_description,
        "timeline": config.timeline,
        "pricing": breakdown.to_dict(),
    }

    logger.info("quote_exported", extra={
        "quote_id": quote_id,
        "package_id": package.id,
        "total": str(breakdown.total.amount),
    })
    return export


def dumps_quote_export(export: dict[str, Any]) -> str:
    """Pretty-printed JSON document of an export."""
    return json.dumps(export, indent=2, ensure_ascii=False)


def export_filename(export: dict[str, Any]) -> str:
    """``offerte-YYYY-MM-DD.json`` from the export timestamp."""
    return f"offerte-{export['timestamp'].split('T')[0]}.json"
