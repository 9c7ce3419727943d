"""
Draft Codec -- Snapshot encoding of an OfferConfiguration.

Responsibility:
    serialize() turns a configuration into a JSON-safe, denormalized snapshot
    (names and prices at time of save) for the draft store. deserialize()
    decodes a stored snapshot against the *live* catalog into a typed
    ConfigurationPatch plus the list of fields it had to drop.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Catalog and policy are injected. Output of deserialize() is applied with
    OfferBuilder.load_state().

Snapshot shape (camelCase, additive only):
    schemaVersion, currency,
    selectedPackage {id, name, basePrice} | null,
    selectedOptions [{id, name, price}],
    customPrices {optionId: number}, optionNotes {optionId: string},
    selectedMaintenance {id, name, price} | null,
    extraPages, contentPages,
    customLineItems [{id, name, price}],
    discount {type, value}, paymentSchedule,
    scopeDescription, timeline

Invariants enforced:
    - Ids are re-resolved against the live catalog; denormalized names and
      prices in the snapshot are informational only.
    - Options not eligible for the restored package are dropped.
    - The patch never carries an out-of-policy value: malformed fields fall
      back to their defaults.

Failure modes:
    - None raised for snapshot content. Every dropped or defaulted field is
      reported as a DroppedField and logged as ``draft_field_dropped``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import uuid4

from offer_kernel.domain.catalog import FixedPrice, Option, OptionCategory, Package, PricingCatalog
from offer_kernel.domain.configuration import (
    ConfigurationPatch,
    CustomLineItem,
    Discount,
    DiscountType,
    OfferConfiguration,
    PaymentSchedule,
)
from offer_kernel.domain.policy import PricingPolicy
from offer_kernel.domain.values import Money
from offer_kernel.logging_config import get_logger

logger = get_logger("domain.draft_codec")

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class DroppedField:
    """A snapshot field (or list entry) that was ignored during decode."""

    path: str
    reason: str


@dataclass(frozen=True)
class DecodeResult:
    patch: ConfigurationPatch
    dropped: tuple[DroppedField, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.dropped


def _json_number(value: Decimal) -> int | float:
    """Decimal as a JSON number; integral values stay ints."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _parse_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, (int, float, str, Decimal)):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


class DraftCodec:
    """
    Encode and decode offer drafts.

    Contract:
        For an unchanged catalog, deserialize(serialize(c)) restores a
        configuration that prices to the same total as ``c``.
    """

    def __init__(self, catalog: PricingCatalog, policy: PricingPolicy):
        self._catalog = catalog
        self._policy = policy

    # -------------------------------------------------------------------------
    # Encode
    # -------------------------------------------------------------------------

    def _resolved_option_price(self, config: OfferConfiguration, option: Option) -> Money:
        link = self._policy.link_for_option(option.id)
        if link is not None:
            return link.unit_price * config.quantity(link.counter)
        if isinstance(option.price, FixedPrice):
            return option.price.amount
        return config.custom_price(option.id) or Money.zero(self._policy.currency)

    def _option_entry(self, config: OfferConfiguration, option: Option) -> dict:
        return {
            "id": option.id,
            "name": option.name,
            "price": _json_number(self._resolved_option_price(config, option).amount),
        }

    def serialize(self, config: OfferConfiguration) -> dict:
        """JSON-safe snapshot of ``config``."""
        package = config.selected_package
        maintenance = config.selected_maintenance
        discount = config.discount
        return {
            "schemaVersion": SCHEMA_VERSION,
            "currency": self._policy.currency.code,
            "selectedPackage": (
                {
                    "id": package.id,
                    "name": package.name,
                    "basePrice": _json_number(package.base_price.amount),
                }
                if package is not None
                else None
            ),
            "selectedOptions": [
                self._option_entry(config, option) for option in config.selected_options
            ],
            "customPrices": {
                option_id: _json_number(money.amount)
                for option_id, money in config.custom_prices.items()
            },
            "optionNotes": dict(config.option_notes),
            "selectedMaintenance": (
                self._option_entry(config, maintenance) if maintenance is not None else None
            ),
            "extraPages": config.extra_pages,
            "contentPages": config.content_pages,
            "customLineItems": [
                {"id": item.id, "name": item.name, "price": _json_number(item.price.amount)}
                for item in config.custom_line_items
            ],
            "discount": {
                "type": discount.type.value if discount.type is not None else None,
                "value": _json_number(discount.value),
            },
            "paymentSchedule": config.payment_schedule.value,
            "scopeDescription": config.scope_description,
            "timeline": config.timeline,
        }

    # -------------------------------------------------------------------------
    # Decode
    # -------------------------------------------------------------------------

    def deserialize(self, snapshot: Any) -> DecodeResult:
        """Decode ``snapshot`` against the live catalog. Never raises for content."""
        dropped: list[DroppedField] = []

        def drop(path: str, reason: str) -> None:
            dropped.append(DroppedField(path, reason))

        if not isinstance(snapshot, Mapping):
            drop("$", "not_an_object")
            return self._finish(ConfigurationPatch(), dropped)

        amounts_trusted = self._check_currency(snapshot, drop)

        package = self._decode_package(snapshot.get("selectedPackage"), drop)
        options = self._decode_options(snapshot.get("selectedOptions"), package, drop)
        option_ids = {o.id for o in options}

        patch = ConfigurationPatch(
            selected_package=package,
            selected_options=options,
            custom_prices=(
                self._decode_custom_prices(snapshot.get("customPrices"), drop)
                if amounts_trusted
                else {}
            ),
            option_notes=self._decode_notes(snapshot.get("optionNotes"), option_ids, drop),
            selected_maintenance=self._decode_maintenance(
                snapshot.get("selectedMaintenance"), drop
            ),
            extra_pages=self._decode_quantity(snapshot, "extraPages", drop),
            content_pages=self._decode_quantity(snapshot, "contentPages", drop),
            custom_line_items=(
                self._decode_line_items(snapshot.get("customLineItems"), drop)
                if amounts_trusted
                else ()
            ),
            discount=self._decode_discount(snapshot.get("discount"), amounts_trusted, drop),
            payment_schedule=self._decode_schedule(snapshot.get("paymentSchedule"), drop),
            scope_description=self._decode_text(snapshot, "scopeDescription", drop),
            timeline=self._decode_text(snapshot, "timeline", drop),
        )
        return self._finish(patch, dropped)

    def restore(self, snapshot: Any, builder) -> OfferConfiguration:
        """Decode ``snapshot`` and apply it to an empty configuration."""
        result = self.deserialize(snapshot)
        return builder.load_state(OfferConfiguration.empty(), result.patch)

    def _finish(self, patch: ConfigurationPatch, dropped: list[DroppedField]) -> DecodeResult:
        for item in dropped:
            logger.info(
                "draft_field_dropped", extra={"path": item.path, "reason": item.reason}
            )
        logger.debug("draft_decoded", extra={
            "field_count": len(patch.present_fields()),
            "dropped_count": len(dropped),
        })
        return DecodeResult(patch=patch, dropped=tuple(dropped))

    def _check_currency(self, snapshot: Mapping, drop) -> bool:
        currency = snapshot.get("currency")
        if currency is None or currency == self._policy.currency.code:
            return True
        drop("currency", "currency_mismatch")
        return False

    def _money(self, amount: Decimal | None) -> Money | None:
        """Amount rounded to the currency's minor unit, as the mutators store it."""
        if amount is None:
            return None
        try:
            return Money(amount=amount, currency=self._policy.currency).round()
        except InvalidOperation:
            return None

    def _entry_id(self, raw: Any) -> str | None:
        if isinstance(raw, str):
            return raw
        if isinstance(raw, Mapping) and isinstance(raw.get("id"), str):
            return raw["id"]
        return None

    def _decode_package(self, raw: Any, drop) -> Package | None:
        if raw is None:
            return None
        package_id = self._entry_id(raw)
        if package_id is None:
            drop("selectedPackage", "malformed")
            return None
        package = self._catalog.get_package(package_id)
        if package is None:
            drop("selectedPackage", "unknown_package")
        return package

    def _decode_options(
        self, raw: Any, package: Package | None, drop
    ) -> tuple[Option, ...]:
        if raw is None:
            return ()
        if not isinstance(raw, list):
            drop("selectedOptions", "not_a_list")
            return ()
        options: list[Option] = []
        for index, entry in enumerate(raw):
            path = f"selectedOptions[{index}]"
            option_id = self._entry_id(entry)
            if option_id is None:
                drop(path, "malformed")
                continue
            option = self._catalog.get_option(option_id)
            if option is None:
                drop(path, "unknown_option")
            elif option.category == OptionCategory.MAINTENANCE:
                drop(path, "not_an_add_on")
            elif not option.is_eligible_for(package):
                drop(path, "not_eligible")
            elif any(o.id == option.id for o in options):
                drop(path, "duplicate")
            else:
                options.append(option)
        return tuple(options)

    def _decode_custom_prices(self, raw: Any, drop) -> dict[str, Money]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            drop("customPrices", "not_an_object")
            return {}
        prices: dict[str, Money] = {}
        for option_id, value in raw.items():
            path = f"customPrices.{option_id}"
            if self._catalog.get_option(str(option_id)) is None:
                drop(path, "unknown_option")
                continue
            money = self._money(_parse_decimal(value))
            if money is None or money.is_negative:
                drop(path, "invalid_amount")
                continue
            prices[str(option_id)] = money
        return prices

    def _decode_notes(self, raw: Any, option_ids: set[str], drop) -> dict[str, str]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            drop("optionNotes", "not_an_object")
            return {}
        notes: dict[str, str] = {}
        for option_id, text in raw.items():
            path = f"optionNotes.{option_id}"
            if not isinstance(text, str):
                drop(path, "not_a_string")
            elif option_id not in option_ids:
                drop(path, "option_not_selected")
            elif text:
                notes[option_id] = text
        return notes

    def _decode_maintenance(self, raw: Any, drop) -> Option | None:
        if raw is None:
            return None
        option_id = self._entry_id(raw)
        if option_id is None:
            drop("selectedMaintenance", "malformed")
            return None
        option = self._catalog.get_option(option_id)
        if option is None:
            drop("selectedMaintenance", "unknown_option")
            return None
        if option.category != OptionCategory.MAINTENANCE:
            drop("selectedMaintenance", "not_a_maintenance_option")
            return None
        return option

    def _decode_quantity(self, snapshot: Mapping, key: str, drop) -> int:
        raw = snapshot.get(key)
        if raw is None:
            return 0
        value = _parse_decimal(raw)
        if value is None or value != value.to_integral_value():
            drop(key, "not_an_integer")
            return 0
        if value < 0:
            drop(key, "negative")
            return 0
        if value > self._policy.max_quantity:
            drop(key, "too_large")
            return 0
        return int(value)

    def _decode_line_items(self, raw: Any, drop) -> tuple[CustomLineItem, ...]:
        if raw is None:
            return ()
        if not isinstance(raw, list):
            drop("customLineItems", "not_a_list")
            return ()
        items: list[CustomLineItem] = []
        for index, entry in enumerate(raw):
            path = f"customLineItems[{index}]"
            if not isinstance(entry, Mapping):
                drop(path, "malformed")
                continue
            name = entry.get("name")
            price = self._money(_parse_decimal(entry.get("price")))
            if not isinstance(name, str) or not name.strip():
                drop(path, "blank_name")
                continue
            if price is None or not price.is_positive:
                drop(path, "invalid_price")
                continue
            item_id = entry.get("id")
            if not isinstance(item_id, str) or not item_id:
                item_id = f"custom-{uuid4().hex[:12]}"
            if any(item.id == item_id for item in items):
                drop(path, "duplicate")
                continue
            items.append(
                CustomLineItem(
                    id=item_id,
                    name=name.strip(),
                    price=price,
                )
            )
        return tuple(items)

    def _decode_discount(self, raw: Any, amounts_trusted: bool, drop) -> Discount:
        if raw is None:
            return Discount.none()
        if not isinstance(raw, Mapping):
            drop("discount", "not_an_object")
            return Discount.none()
        raw_type = raw.get("type")
        if raw_type is None:
            return Discount.none()
        try:
            kind = DiscountType(raw_type)
        except ValueError:
            drop("discount.type", "unknown_type")
            return Discount.none()

        value = _parse_decimal(raw.get("value"))
        if value is None or value < Decimal("0"):
            drop("discount.value", "invalid_value")
            return Discount.none()

        if kind == DiscountType.PERCENTAGE:
            if value == Decimal("0"):
                return Discount.none()
            if not self._policy.is_allowed_percentage(value):
                drop("discount.value", "percentage_not_allowed")
                return Discount.none()
        elif not amounts_trusted:
            drop("discount.value", "currency_mismatch")
            return Discount.none()
        else:
            money = self._money(value)
            if money is None:
                drop("discount.value", "invalid_value")
                return Discount.none()
            value = money.amount
        return Discount(type=kind, value=value)

    def _decode_schedule(self, raw: Any, drop) -> PaymentSchedule:
        if raw is None:
            return PaymentSchedule.ONCE
        schedule = PaymentSchedule.parse(raw)
        if schedule is None:
            drop("paymentSchedule", "unknown_schedule")
            return PaymentSchedule.ONCE
        return schedule

    def _decode_text(self, snapshot: Mapping, key: str, drop) -> str:
        raw = snapshot.get(key)
        if raw is None:
            return ""
        if not isinstance(raw, str):
            drop(key, "not_a_string")
            return ""
        return raw
