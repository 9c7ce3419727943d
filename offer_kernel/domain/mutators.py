"""
Mutators -- The only way an OfferConfiguration changes.

Responsibility:
    OfferBuilder turns user intent (pick a package, toggle an option, change
    a quantity, set a discount, ...) into the next OfferConfiguration while
    keeping the configuration invariants intact.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Receives the catalog and pricing policy by injection. Called by the
    offer session; DraftCodec output enters through load_state().

Invariants enforced:
    - Selected options are always eligible for the selected package;
      changing the package drops the rest together with their negotiated
      prices and notes.
    - A quantity-linked option is selected exactly when its counter is > 0.
    - Percentage discounts come from the allowed set; fixed discounts and
      custom prices are never negative; custom line items are positive.
    - Entered amounts are stored rounded to the currency's minor unit.
    - Quantities never exceed the policy's ``max_quantity``.
    - Notes exist only for selected options.

Failure modes:
    - None raised. Invalid input is clamped (negative quantities) or the
      mutation is refused and the unchanged configuration is returned.
      Refusals are logged at DEBUG as ``mutation_refused``.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Callable
from uuid import uuid4

from offer_kernel.domain.catalog import Option, OptionCategory, Package, PricingCatalog
from offer_kernel.domain.configuration import (
    ConfigurationPatch,
    CustomLineItem,
    Discount,
    DiscountType,
    OfferConfiguration,
    PaymentSchedule,
)
from offer_kernel.domain.policy import PricingPolicy, QuantityCounter
from offer_kernel.domain.values import Money
from offer_kernel.logging_config import get_logger

logger = get_logger("domain.mutators")


def _refuse(operation: str, reason: str, **extra: Any) -> None:
    logger.debug(
        "mutation_refused",
        extra={"operation": operation, "reason": reason, **extra},
    )


def _to_decimal(value: Any) -> Decimal | None:
    """Best-effort numeric coercion; None for anything non-numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Money):
        return value.amount
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _new_line_item_id() -> str:
    return f"custom-{uuid4().hex[:12]}"


class OfferBuilder:
    """
    Mutators for OfferConfiguration.

    Contract:
        Every public method takes the current configuration and returns the
        next one. A refused mutation returns the very same instance, so
        ``builder.x(config, ...) is config`` tells a caller nothing changed.

    Non-goals:
        - Does NOT persist anything; autosave is the session's concern.
        - Does NOT compute prices; see offer_engines.pricing.
    """

    def __init__(
        self,
        catalog: PricingCatalog,
        policy: PricingPolicy,
        id_factory: Callable[[], str] | None = None,
    ):
        if catalog.currency != policy.currency:
            raise ValueError(
                f"Catalog currency {catalog.currency} does not match policy currency {policy.currency}"
            )
        self._catalog = catalog
        self._policy = policy
        self._id_factory = id_factory or _new_line_item_id

    @property
    def catalog(self) -> PricingCatalog:
        return self._catalog

    @property
    def policy(self) -> PricingPolicy:
        return self._policy

    def _to_money(self, value: Any) -> Money | None:
        """Entered amount rounded to the currency's minor unit, or None."""
        if isinstance(value, Money) and value.currency != self._policy.currency:
            return None
        amount = _to_decimal(value)
        if amount is None:
            return None
        try:
            return Money(amount=amount, currency=self._policy.currency).round()
        except InvalidOperation:
            # More digits than the decimal context can quantize.
            return None

    # -------------------------------------------------------------------------
    # Package and options
    # -------------------------------------------------------------------------

    def set_package(
        self, config: OfferConfiguration, package: Package | None
    ) -> OfferConfiguration:
        """Select a package (or none) and drop options it does not allow."""
        if package is not None:
            live = self._catalog.get_package(package.id)
            if live is None:
                _refuse("set_package", "unknown_package", package_id=package.id)
                return config
            package = live

        eligible = self._catalog.eligible_option_ids(package)
        kept = tuple(o for o in config.selected_options if o.id in eligible)
        dropped = frozenset(o.id for o in config.selected_options if o.id not in eligible)

        changes: dict[str, Any] = {
            "selected_package": package,
            "selected_options": kept,
            "custom_prices": {
                k: v for k, v in config.custom_prices.items() if k not in dropped
            },
            "option_notes": {
                k: v for k, v in config.option_notes.items() if k not in dropped
            },
        }
        for link in self._policy.quantity_links:
            if link.option_id not in eligible:
                changes[link.counter.value] = 0

        if dropped:
            logger.info(
                "options_dropped_on_package_change",
                extra={
                    "package_id": package.id if package else None,
                    "dropped_option_ids": sorted(dropped),
                },
            )
        return replace(config, **changes)

    def toggle_option(self, config: OfferConfiguration, option: Option) -> OfferConfiguration:
        """
        Remove the option if selected, otherwise add it when eligible.

        Removal discards the option's note but keeps its negotiated price, so
        toggling it back restores what the user entered.
        """
        link = self._policy.link_for_option(option.id)

        if config.has_option(option.id):
            changes: dict[str, Any] = {
                "selected_options": tuple(
                    o for o in config.selected_options if o.id != option.id
                ),
                "option_notes": {
                    k: v for k, v in config.option_notes.items() if k != option.id
                },
            }
            if link is not None:
                changes[link.counter.value] = 0
            return replace(config, **changes)

        live = self._catalog.get_option(option.id)
        if live is None:
            _refuse("toggle_option", "unknown_option", option_id=option.id)
            return config
        if not live.is_eligible_for(config.selected_package):
            _refuse("toggle_option", "not_eligible", option_id=option.id)
            return config

        changes = {"selected_options": config.selected_options + (live,)}
        if link is not None and config.quantity(link.counter) == 0:
            changes[link.counter.value] = 1
        return replace(config, **changes)

    def set_custom_price(
        self, config: OfferConfiguration, option_id: str, amount: Any
    ) -> OfferConfiguration:
        """Store a negotiated price; used only for negotiable options."""
        money = self._to_money(amount)
        if money is None or money.is_negative:
            _refuse("set_custom_price", "invalid_amount", option_id=option_id)
            return config
        return replace(config, custom_prices={**config.custom_prices, option_id: money})

    def set_option_note(
        self, config: OfferConfiguration, option_id: str, text: str
    ) -> OfferConfiguration:
        """Note on a selected option; empty text removes it."""
        if not config.has_option(option_id):
            _refuse("set_option_note", "option_not_selected", option_id=option_id)
            return config
        notes = dict(config.option_notes)
        if text:
            notes[option_id] = str(text)
        else:
            notes.pop(option_id, None)
        return replace(config, option_notes=notes)

    # -------------------------------------------------------------------------
    # Quantities
    # -------------------------------------------------------------------------

    def set_quantity(
        self, config: OfferConfiguration, counter: QuantityCounter, qty: Any
    ) -> OfferConfiguration:
        """
        Set a counter and keep its linked option in step.

        0 -> 1 selects the linked option, -> 0 deselects it. Negative values
        clamp to 0; values above the policy's ``max_quantity`` are refused.
        A positive quantity for an option the current package does not
        allow is refused.
        """
        number = _to_decimal(qty)
        if number is None:
            _refuse("set_quantity", "not_a_number", counter=counter.value)
            return config
        if number > self._policy.max_quantity:
            _refuse("set_quantity", "too_large", counter=counter.value)
            return config
        value = int(number) if number > 0 else 0

        link = self._policy.link_for_counter(counter)
        if link is None:
            return replace(config, **{counter.value: value})

        if value == 0:
            return replace(
                config,
                **{
                    counter.value: 0,
                    "selected_options": tuple(
                        o for o in config.selected_options if o.id != link.option_id
                    ),
                    "option_notes": {
                        k: v for k, v in config.option_notes.items() if k != link.option_id
                    },
                },
            )

        if config.has_option(link.option_id):
            return replace(config, **{counter.value: value})

        option = self._catalog.get_option(link.option_id)
        if option is None or not option.is_eligible_for(config.selected_package):
            _refuse("set_quantity", "linked_option_not_eligible", counter=counter.value)
            return config
        return replace(
            config,
            **{
                counter.value: value,
                "selected_options": config.selected_options + (option,),
            },
        )

    def set_extra_pages(self, config: OfferConfiguration, qty: Any) -> OfferConfiguration:
        return self.set_quantity(config, QuantityCounter.EXTRA_PAGES, qty)

    def set_content_pages(self, config: OfferConfiguration, qty: Any) -> OfferConfiguration:
        return self.set_quantity(config, QuantityCounter.CONTENT_PAGES, qty)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def set_maintenance(
        self, config: OfferConfiguration, option: Option | None
    ) -> OfferConfiguration:
        """Replace the single maintenance plan slot (or clear it)."""
        if option is None:
            return replace(config, selected_maintenance=None)
        live = self._catalog.get_option(option.id)
        if live is None or live.category != OptionCategory.MAINTENANCE:
            _refuse("set_maintenance", "not_a_maintenance_option", option_id=option.id)
            return config
        return replace(config, selected_maintenance=live)

    # -------------------------------------------------------------------------
    # Custom line items
    # -------------------------------------------------------------------------

    def _valid_line_item(self, name: Any, price: Any) -> tuple[str, Money] | None:
        clean_name = name.strip() if isinstance(name, str) else ""
        money = self._to_money(price)
        if not clean_name or money is None or not money.is_positive:
            return None
        return clean_name, money

    def add_custom_line_item(
        self, config: OfferConfiguration, name: str, price: Any
    ) -> OfferConfiguration:
        valid = self._valid_line_item(name, price)
        if valid is None:
            _refuse("add_custom_line_item", "invalid_name_or_price")
            return config
        item = CustomLineItem(id=self._id_factory(), name=valid[0], price=valid[1])
        return replace(config, custom_line_items=config.custom_line_items + (item,))

    def update_custom_line_item(
        self, config: OfferConfiguration, item_id: str, name: str, price: Any
    ) -> OfferConfiguration:
        valid = self._valid_line_item(name, price)
        if valid is None:
            _refuse("update_custom_line_item", "invalid_name_or_price", item_id=item_id)
            return config
        if not any(item.id == item_id for item in config.custom_line_items):
            _refuse("update_custom_line_item", "unknown_item", item_id=item_id)
            return config
        items = tuple(
            replace(item, name=valid[0], price=valid[1]) if item.id == item_id else item
            for item in config.custom_line_items
        )
        return replace(config, custom_line_items=items)

    def remove_custom_line_item(
        self, config: OfferConfiguration, item_id: str
    ) -> OfferConfiguration:
        items = tuple(item for item in config.custom_line_items if item.id != item_id)
        if len(items) == len(config.custom_line_items):
            _refuse("remove_custom_line_item", "unknown_item", item_id=item_id)
            return config
        return replace(config, custom_line_items=items)

    # -------------------------------------------------------------------------
    # Discount, payment and narrative
    # -------------------------------------------------------------------------

    def set_discount(
        self,
        config: OfferConfiguration,
        discount_type: DiscountType | str | None,
        value: Any = 0,
    ) -> OfferConfiguration:
        """
        Set the discount.

        ``None`` clears it. A percentage must be one of the allowed values
        (0 clears the discount); anything else is refused. A fixed amount
        must not be negative and is capped later, by the pricing engine.
        """
        if discount_type is None:
            return replace(config, discount=Discount.none())
        try:
            kind = DiscountType(discount_type)
        except ValueError:
            _refuse("set_discount", "unknown_type", discount_type=str(discount_type))
            return config

        amount = _to_decimal(value)
        if amount is None or amount < Decimal("0"):
            _refuse("set_discount", "invalid_value", discount_type=kind.value)
            return config

        if kind == DiscountType.PERCENTAGE:
            if amount == Decimal("0"):
                return replace(config, discount=Discount.none())
            if not self._policy.is_allowed_percentage(amount):
                _refuse("set_discount", "percentage_not_allowed", value=str(amount))
                return config
        else:
            money = self._to_money(amount)
            if money is None:
                _refuse("set_discount", "invalid_value", discount_type=kind.value)
                return config
            amount = money.amount
        return replace(config, discount=Discount(type=kind, value=amount))

    def set_payment_schedule(
        self, config: OfferConfiguration, schedule: PaymentSchedule | str
    ) -> OfferConfiguration:
        parsed = PaymentSchedule.parse(schedule)
        if parsed is None:
            _refuse("set_payment_schedule", "unknown_schedule", schedule=str(schedule))
            return config
        return replace(config, payment_schedule=parsed)

    def set_scope_description(self, config: OfferConfiguration, text: str) -> OfferConfiguration:
        return replace(config, scope_description=text or "")

    def set_timeline(self, config: OfferConfiguration, text: str) -> OfferConfiguration:
        return replace(config, timeline=text or "")

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    def apply_preset(self, config: OfferConfiguration, preset_id: str) -> OfferConfiguration:
        """Select a preset's package, then each of its options not yet selected."""
        preset = self._catalog.get_preset(preset_id)
        if preset is None:
            _refuse("apply_preset", "unknown_preset", preset_id=preset_id)
            return config
        config = self.set_package(config, self._catalog.get_package(preset.package_id))
        for option_id in preset.option_ids:
            option = self._catalog.get_option(option_id)
            if option is not None and not config.has_option(option_id):
                config = self.toggle_option(config, option)
        return config

    def reset(self, config: OfferConfiguration) -> OfferConfiguration:
        return OfferConfiguration.empty()

    def load_state(
        self, config: OfferConfiguration, patch: ConfigurationPatch
    ) -> OfferConfiguration:
        """
        Apply a partially reconstructed configuration, then restore invariants.

        The patch may pair a package with options the current catalog no
        longer allows together; eligibility, quantity linkage and discount
        policy are re-applied after the merge.
        """
        changes = {name: getattr(patch, name) for name in patch.present_fields()}
        return self._reconcile(replace(config, **changes))

    def _reconcile(self, config: OfferConfiguration) -> OfferConfiguration:
        package = config.selected_package
        eligible = self._catalog.eligible_option_ids(package)

        kept: list[Option] = []
        dropped: list[str] = []
        for option in config.selected_options:
            if option.id in eligible and all(o.id != option.id for o in kept):
                kept.append(self._catalog.get_option(option.id))
            else:
                dropped.append(option.id)

        changes: dict[str, Any] = {}
        for link in self._policy.quantity_links:
            qty = max(0, config.quantity(link.counter))
            selected = any(o.id == link.option_id for o in kept)
            if selected and qty == 0:
                qty = 1
            elif not selected and qty > 0:
                option = self._catalog.get_option(link.option_id)
                if option is not None and option.id in eligible:
                    kept.append(option)
                else:
                    qty = 0
            changes[link.counter.value] = qty

        kept_ids = {o.id for o in kept}
        changes["selected_options"] = tuple(kept)
        changes["custom_prices"] = {
            k: v
            for k, v in config.custom_prices.items()
            if k not in dropped and v.currency == self._policy.currency and not v.is_negative
        }
        changes["option_notes"] = {
            k: v for k, v in config.option_notes.items() if k in kept_ids
        }

        maintenance = config.selected_maintenance
        if maintenance is not None and not maintenance.is_recurring:
            maintenance = None
        changes["selected_maintenance"] = maintenance

        changes["discount"] = self._reconcile_discount(config.discount)

        if dropped:
            logger.info(
                "stale_options_dropped",
                extra={
                    "package_id": package.id if package else None,
                    "dropped_option_ids": dropped,
                },
            )
        return replace(config, **changes)

    def _reconcile_discount(self, discount: Discount) -> Discount:
        if discount.type is None:
            return Discount.none()
        if discount.value < Decimal("0"):
            return Discount.none()
        if discount.type == DiscountType.PERCENTAGE and not self._policy.is_allowed_percentage(
            discount.value
        ):
            return Discount.none()
        return discount
