"""
Policy -- Fixed pricing policy of the jurisdiction offers are issued in.

Tax rate, allowed discount percentages and the per-unit rates of the two
quantity-linked options. Loaded from ``offer_config/sets/*/policy.yaml``;
``PricingPolicy.standard()`` returns the same values for code that runs
without configuration files (tests, scripts).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from offer_kernel.domain.values import Currency, Money


class QuantityCounter(str, Enum):
    """Configuration counters that drive a quantity-linked option."""

    EXTRA_PAGES = "extra_pages"
    CONTENT_PAGES = "content_pages"


@dataclass(frozen=True)
class QuantityLink:
    """Binds a counter to the option it selects, priced per unit."""

    option_id: str
    counter: QuantityCounter
    unit_price: Money


@dataclass(frozen=True)
class PricingPolicy:
    """Hard-coded business policy for pricing an offer."""

    currency: Currency
    tax_rate: Decimal
    allowed_discount_percentages: frozenset[Decimal]
    quantity_links: tuple[QuantityLink, ...]
    autosave_quiet_seconds: float = 2.0
    max_quantity: int = 1000

    def __post_init__(self) -> None:
        if not isinstance(self.tax_rate, Decimal):
            raise TypeError("tax_rate must be Decimal")
        if self.tax_rate < Decimal("0") or self.tax_rate >= Decimal("1"):
            raise ValueError(f"tax_rate out of range: {self.tax_rate}")
        for pct in self.allowed_discount_percentages:
            if pct <= Decimal("0") or pct > Decimal("100"):
                raise ValueError(f"Allowed discount percentage out of range: {pct}")
        counters = [link.counter for link in self.quantity_links]
        if len(set(counters)) != len(counters):
            raise ValueError("Each quantity counter may drive only one option")
        for link in self.quantity_links:
            if link.unit_price.currency != self.currency:
                raise ValueError(f"Unit price of {link.option_id} is not in {self.currency}")
        if isinstance(self.max_quantity, bool) or not isinstance(self.max_quantity, int):
            raise TypeError("max_quantity must be int")
        if self.max_quantity < 1:
            raise ValueError(f"max_quantity must be positive, got {self.max_quantity}")
        if self.autosave_quiet_seconds < 0:
            raise ValueError("autosave_quiet_seconds must not be negative")

    @classmethod
    def standard(cls) -> PricingPolicy:
        """EUR, 21 % VAT, 5/10/15 % discounts, 125 per extra or content page."""
        eur = Currency("EUR")
        unit = Money.of("125", eur)
        return cls(
            currency=eur,
            tax_rate=Decimal("0.21"),
            allowed_discount_percentages=frozenset(
                {Decimal("5"), Decimal("10"), Decimal("15")}
            ),
            quantity_links=(
                QuantityLink("extra-pages", QuantityCounter.EXTRA_PAGES, unit),
                QuantityLink("content-creation", QuantityCounter.CONTENT_PAGES, unit),
            ),
        )

    def link_for_option(self, option_id: str) -> QuantityLink | None:
        for link in self.quantity_links:
            if link.option_id == option_id:
                return link
        return None

    def link_for_counter(self, counter: QuantityCounter) -> QuantityLink | None:
        for link in self.quantity_links:
            if link.counter == counter:
                return link
        return None

    @property
    def linked_option_ids(self) -> frozenset[str]:
        return frozenset(link.option_id for link in self.quantity_links)

    def is_allowed_percentage(self, value: Decimal) -> bool:
        return value in self.allowed_discount_percentages
