"""
Pricing Engine - Price an offer configuration.

Pure function of (OfferConfiguration, PricingPolicy). No I/O, no clock, no
catalog lookups: everything needed is on the configuration or the policy.

Order of computation:
    1. package amount
    2. options amount (quantity-linked options excluded; negotiable options
       use the entered price, 0 when none was entered)
    3. extra pages amount and content amount (quantity x unit rate)
    4. custom line items amount
    5. subtotal before discount
    6. discount (percentage exact; fixed capped at the subtotal)
    7. subtotal
    8. tax
    9. total, the only rounded figure (half-up, currency minor unit)
   10. recurring monthly (maintenance plan, never part of the total)

Usage:
    from offer_engines.pricing import PricingCalculator
    from offer_kernel.domain.policy import PricingPolicy

    breakdown = PricingCalculator(PricingPolicy.standard()).calculate(config)
    print(breakdown.total)  # Money: 1470.15 EUR
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from offer_engines.tracer import traced_engine
from offer_kernel.domain.catalog import FixedPrice, Option
from offer_kernel.domain.configuration import DiscountType, OfferConfiguration
from offer_kernel.domain.policy import PricingPolicy
from offer_kernel.domain.values import Money, sum_money
from offer_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")

_HUNDRED = Decimal("100")


class PriceLineKind(str, Enum):
    """What a priced line on the offer refers to."""

    PACKAGE = "package"
    OPTION = "option"
    QUANTITY = "quantity"
    CUSTOM = "custom"


@dataclass(frozen=True)
class PriceLine:
    """
    One priced line of the offer, unrounded.

    Document renderers list these; the breakdown totals are the sums.
    """

    kind: PriceLineKind
    ref_id: str
    name: str
    amount: Money
    quantity: int = 1
    is_negotiated: bool = False


@dataclass(frozen=True)
class PriceBreakdown:
    """
    Result of pricing an offer.

    Every amount except ``total`` is at full precision. ``total`` is rounded
    exactly once, half-up to the currency's minor unit.
    """

    package_amount: Money
    options_amount: Money
    extra_pages_amount: Money
    content_amount: Money
    custom_line_items_amount: Money
    subtotal_before_discount: Money
    discount_amount: Money
    subtotal: Money
    tax: Money
    total: Money
    recurring_monthly: Money
    tax_rate: Decimal
    is_valid: bool
    lines: tuple[PriceLine, ...] = ()

    @property
    def currency(self) -> str:
        return self.total.currency.code

    def to_dict(self) -> dict:
        """JSON-safe form; components rounded for display, total as computed."""

        def shown(money: Money) -> str:
            return str(money.round().amount)

        return {
            "currency": self.currency,
            "package_amount": shown(self.package_amount),
            "options_amount": shown(self.options_amount),
            "extra_pages_amount": shown(self.extra_pages_amount),
            "content_amount": shown(self.content_amount),
            "custom_line_items_amount": shown(self.custom_line_items_amount),
            "subtotal_before_discount": shown(self.subtotal_before_discount),
            "discount_amount": shown(self.discount_amount),
            "subtotal": shown(self.subtotal),
            "tax": shown(self.tax),
            "tax_rate": str(self.tax_rate),
            "total": str(self.total.amount),
            "recurring_monthly": shown(self.recurring_monthly),
            "is_valid": self.is_valid,
        }


class PricingCalculator:
    """
    Calculate the price breakdown of an offer configuration.

    Pure functions - no I/O, no side effects. Safe to call on every read;
    identical configurations always produce identical breakdowns.
    """

    def __init__(self, policy: PricingPolicy):
        self._policy = policy

    @property
    def policy(self) -> PricingPolicy:
        return self._policy

    def option_price(self, config: OfferConfiguration, option: Option) -> Money:
        """
        Effective price of a selected non-linked option.

        Catalog price for fixed-price options; the entered negotiated price
        for negotiable ones (zero until one is entered).
        """
        if isinstance(option.price, FixedPrice):
            return option.price.amount
        entered = config.custom_price(option.id)
        if entered is None:
            return Money.zero(self._policy.currency)
        return entered

    @traced_engine("pricing", "1.0", fingerprint_fields=("config",))
    def calculate(self, config: OfferConfiguration) -> PriceBreakdown:
        """
        Price ``config``.

        Never raises for a configuration produced by OfferBuilder. A
        configuration without a package prices to zero with ``is_valid``
        False; callers gate save/export on that flag.
        """
        currency = self._policy.currency
        zero = Money.zero(currency)
        linked = self._policy.linked_option_ids
        lines: list[PriceLine] = []

        # 1. package
        package = config.selected_package
        package_amount = package.base_price if package is not None else zero
        if package is not None:
            lines.append(
                PriceLine(PriceLineKind.PACKAGE, package.id, package.name, package_amount)
            )

        # 2. options
        option_amounts: list[Money] = []
        for option in config.selected_options:
            if option.id in linked:
                continue
            amount = self.option_price(config, option)
            option_amounts.append(amount)
            lines.append(
                PriceLine(
                    PriceLineKind.OPTION,
                    option.id,
                    option.name,
                    amount,
                    is_negotiated=option.is_negotiable,
                )
            )
        options_amount = sum_money(option_amounts, currency)

        # 3. quantity-linked options
        quantity_amounts: dict[str, Money] = {}
        for link in self._policy.quantity_links:
            qty = config.quantity(link.counter)
            amount = link.unit_price * qty
            quantity_amounts[link.counter.value] = amount
            if qty > 0:
                name = next(
                    (o.name for o in config.selected_options if o.id == link.option_id),
                    link.option_id,
                )
                lines.append(
                    PriceLine(PriceLineKind.QUANTITY, link.option_id, name, amount, quantity=qty)
                )
        extra_pages_amount = quantity_amounts.get("extra_pages", zero)
        content_amount = quantity_amounts.get("content_pages", zero)

        # 4. custom line items
        custom_line_items_amount = sum_money(
            (item.price for item in config.custom_line_items), currency
        )
        for item in config.custom_line_items:
            lines.append(PriceLine(PriceLineKind.CUSTOM, item.id, item.name, item.price))

        # 5-7. discount
        subtotal_before_discount = (
            package_amount
            + options_amount
            + extra_pages_amount
            + content_amount
            + custom_line_items_amount
        )
        discount_amount = self.discount_amount(config, subtotal_before_discount)
        subtotal = subtotal_before_discount - discount_amount

        # 8-9. tax and total
        tax = subtotal * self._policy.tax_rate
        total = (subtotal + tax).round()

        # 10. recurring
        recurring_monthly = zero
        maintenance = config.selected_maintenance
        if maintenance is not None:
            recurring_monthly = self.option_price(config, maintenance)

        breakdown = PriceBreakdown(
            package_amount=package_amount,
            options_amount=options_amount,
            extra_pages_amount=extra_pages_amount,
            content_amount=content_amount,
            custom_line_items_amount=custom_line_items_amount,
            subtotal_before_discount=subtotal_before_discount,
            discount_amount=discount_amount,
            subtotal=subtotal,
            tax=tax,
            total=total,
            recurring_monthly=recurring_monthly,
            tax_rate=self._policy.tax_rate,
            is_valid=config.is_valid,
            lines=tuple(lines),
        )

        logger.debug("offer_priced", extra={
            "package_id": package.id if package is not None else None,
            "option_count": len(config.selected_options),
            "subtotal_before_discount": str(subtotal_before_discount.amount),
            "discount_amount": str(discount_amount.amount),
            "total": str(total.amount),
            "is_valid": config.is_valid,
        })
        return breakdown

    def discount_amount(
        self, config: OfferConfiguration, subtotal_before_discount: Money
    ) -> Money:
        """
        Discount on ``subtotal_before_discount``.

        Percentage: exact share of the subtotal. Fixed: the value, capped at
        the subtotal. The result lies in [0, subtotal_before_discount].
        """
        currency = self._policy.currency
        discount = config.discount
        if discount.type is None or discount.value <= Decimal("0"):
            return Money.zero(currency)

        if discount.type == DiscountType.PERCENTAGE:
            amount = subtotal_before_discount * (discount.value / _HUNDRED)
        else:
            amount = Money(amount=discount.value, currency=currency)

        amount = amount.min(subtotal_before_discount)
        return amount.max(Money.zero(currency))


def calculate_offer(config: OfferConfiguration, policy: PricingPolicy) -> PriceBreakdown:
    """Convenience wrapper around PricingCalculator(policy).calculate(config)."""
    return PricingCalculator(policy).calculate(config)
