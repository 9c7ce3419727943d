"""
Pure domain layer.

This module contains the catalog, the offer configuration, its mutators and
the draft codec, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock interface)
- I/O

All domain objects are immutable and deterministic.
"""

from offer_kernel.domain.catalog import (
    ALL_PACKAGE_CATEGORIES,
    FixedPrice,
    NegotiablePrice,
    Option,
    OptionCategory,
    OptionPrice,
    Package,
    PackageCategory,
    Preset,
    PricingCatalog,
)
from offer_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from offer_kernel.domain.configuration import (
    ConfigurationPatch,
    CustomLineItem,
    Discount,
    DiscountType,
    OfferConfiguration,
    PaymentSchedule,
)
from offer_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from offer_kernel.domain.draft_codec import DecodeResult, DraftCodec, DroppedField
from offer_kernel.domain.mutators import OfferBuilder
from offer_kernel.domain.policy import PricingPolicy, QuantityCounter, QuantityLink
from offer_kernel.domain.values import Currency, Money, sum_money

__all__ = [
    "ALL_PACKAGE_CATEGORIES",
    "Clock",
    "ConfigurationPatch",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "CustomLineItem",
    "DecodeResult",
    "DeterministicClock",
    "Discount",
    "DiscountType",
    "DraftCodec",
    "DroppedField",
    "FixedPrice",
    "Money",
    "NegotiablePrice",
    "OfferBuilder",
    "OfferConfiguration",
    "Option",
    "OptionCategory",
    "OptionPrice",
    "Package",
    "PackageCategory",
    "PaymentSchedule",
    "Preset",
    "PricingCatalog",
    "PricingPolicy",
    "QuantityCounter",
    "QuantityLink",
    "SystemClock",
    "sum_money",
]
