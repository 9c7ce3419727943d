"""
Module: offer_engines
Responsibility:
    Pure calculation engines for offers: pricing and payment installments.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import offer_kernel.domain and offer_kernel.logging_config.
    MUST NOT import offer_kernel.services or offer_config.

Invariants enforced:
    - Decimal-only arithmetic: all monetary amounts are Money.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from offer_engines import PricingCalculator, split_total
"""

from offer_engines.payment_schedule import Installment, split_total
from offer_engines.pricing import (
    PriceBreakdown,
    PriceLine,
    PriceLineKind,
    PricingCalculator,
    calculate_offer,
)

__all__ = [
    "Installment",
    "PriceBreakdown",
    "PriceLine",
    "PriceLineKind",
    "PricingCalculator",
    "calculate_offer",
    "split_total",
]
