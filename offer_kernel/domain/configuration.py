"""
Configuration -- The offer a user is assembling.

Responsibility:
    Defines OfferConfiguration, the single aggregate an editing session
    mutates, plus the small value types it is made of (discount, payment
    schedule, custom line items) and ConfigurationPatch, the partial form a
    restored draft arrives in.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Instances are produced by OfferBuilder (mutators) and DraftCodec and are
    read by the pricing engine. Nothing else constructs them with content.

Invariants (maintained by OfferBuilder, not by construction):
    - Every selected option is eligible for the selected package.
    - extra_pages > 0 iff the extra-pages option is selected; likewise for
      content_pages and the content-creation option.
    - selected_maintenance, when set, is a maintenance option.

Non-goals:
    - Does NOT validate against the catalog; it holds no catalog reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from offer_kernel.domain.catalog import Option, Package
from offer_kernel.domain.policy import QuantityCounter
from offer_kernel.domain.values import Money


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class Discount:
    """Discount on the offer subtotal. ``type=None`` means no discount."""

    type: DiscountType | None = None
    value: Decimal = Decimal("0")

    @classmethod
    def none(cls) -> Discount:
        return cls(type=None, value=Decimal("0"))

    @property
    def is_active(self) -> bool:
        return self.type is not None and self.value > Decimal("0")


class PaymentSchedule(str, Enum):
    """How the offer total is invoiced. Never changes the total."""

    ONCE = "once"
    SPLIT_2X25 = "split_2x25"  # 25 % up front, 75 % on delivery
    SPLIT_3X33 = "split_3x33"  # thirds: start, midway, delivery

    @classmethod
    def parse(cls, value: object) -> PaymentSchedule | None:
        """Accept current and legacy wire values; None when unknown."""
        if isinstance(value, PaymentSchedule):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return _LEGACY_SCHEDULES.get(value)


_LEGACY_SCHEDULES: dict[str, PaymentSchedule] = {
    "twice_25": PaymentSchedule.SPLIT_2X25,
    "thrice_33": PaymentSchedule.SPLIT_3X33,
}


@dataclass(frozen=True)
class CustomLineItem:
    """Ad hoc charge outside the catalog."""

    id: str
    name: str
    price: Money


def _readonly(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class OfferConfiguration:
    """
    Immutable snapshot of what the user has picked so far.

    Mutators return a new instance; the previous one stays valid, which
    keeps the pricing engine and the autosave scheduler free of shared
    mutable state.
    """

    selected_package: Package | None = None
    selected_options: tuple[Option, ...] = ()
    custom_prices: Mapping[str, Money] = field(default_factory=dict)
    option_notes: Mapping[str, str] = field(default_factory=dict)
    selected_maintenance: Option | None = None
    extra_pages: int = 0
    content_pages: int = 0
    custom_line_items: tuple[CustomLineItem, ...] = ()
    discount: Discount = Discount()
    payment_schedule: PaymentSchedule = PaymentSchedule.ONCE
    scope_description: str = ""
    timeline: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "custom_prices", _readonly(self.custom_prices))
        object.__setattr__(self, "option_notes", _readonly(self.option_notes))
        object.__setattr__(self, "selected_options", tuple(self.selected_options))
        object.__setattr__(self, "custom_line_items", tuple(self.custom_line_items))

    @classmethod
    def empty(cls) -> OfferConfiguration:
        """The state an editing session starts from."""
        return cls()

    @property
    def is_valid(self) -> bool:
        """An offer needs a base package before it can be saved or exported."""
        return self.selected_package is not None

    @property
    def option_ids(self) -> tuple[str, ...]:
        return tuple(o.id for o in self.selected_options)

    def has_option(self, option_id: str) -> bool:
        return any(o.id == option_id for o in self.selected_options)

    def quantity(self, counter: QuantityCounter) -> int:
        if counter == QuantityCounter.EXTRA_PAGES:
            return self.extra_pages
        return self.content_pages

    def custom_price(self, option_id: str) -> Money | None:
        return self.custom_prices.get(option_id)

    # Read-only mappings are not hashable.
    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class ConfigurationPatch:
    """
    Partially reconstructed configuration (restored drafts, presets).

    ``None`` means "field absent, keep the current value". Produced by
    DraftCodec.deserialize and applied with OfferBuilder.load_state.
    """

    selected_package: Package | None = None
    selected_options: tuple[Option, ...] | None = None
    custom_prices: Mapping[str, Money] | None = None
    option_notes: Mapping[str, str] | None = None
    selected_maintenance: Option | None = None
    extra_pages: int | None = None
    content_pages: int | None = None
    custom_line_items: tuple[CustomLineItem, ...] | None = None
    discount: Discount | None = None
    payment_schedule: PaymentSchedule | None = None
    scope_description: str | None = None
    timeline: str | None = None

    def present_fields(self) -> tuple[str, ...]:
        return tuple(name for name in _PATCH_FIELDS if getattr(self, name) is not None)


_PATCH_FIELDS: tuple[str, ...] = (
    "selected_package",
    "selected_options",
    "custom_prices",
    "option_notes",
    "selected_maintenance",
    "extra_pages",
    "content_pages",
    "custom_line_items",
    "discount",
    "payment_schedule",
    "scope_description",
    "timeline",
)
