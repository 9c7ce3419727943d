"""
Payment Schedule - Split an offer total into invoice installments.

The schedule never changes the total: installments always sum to it exactly.
Each installment is rounded half-up to the currency's minor unit; the last
installment absorbs the rounding remainder.

Usage:
    from offer_engines.payment_schedule import split_total
    from offer_kernel.domain.configuration import PaymentSchedule

    split_total(Money.of("1000.00", "EUR"), PaymentSchedule.SPLIT_3X33)
    # (333.33, 333.33, 333.34)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from offer_kernel.domain.configuration import PaymentSchedule
from offer_kernel.domain.values import Money
from offer_kernel.logging_config import get_logger

logger = get_logger("engines.payment_schedule")

# Share of the total per installment, in order.
SCHEDULE_SHARES: dict[PaymentSchedule, tuple[Decimal, ...]] = {
    PaymentSchedule.ONCE: (Decimal("1"),),
    PaymentSchedule.SPLIT_2X25: (Decimal("0.25"), Decimal("0.75")),
    PaymentSchedule.SPLIT_3X33: (Decimal("1") / 3, Decimal("1") / 3, Decimal("1") / 3),
}

SCHEDULE_LABELS: dict[PaymentSchedule, tuple[str, ...]] = {
    PaymentSchedule.ONCE: ("on delivery",),
    PaymentSchedule.SPLIT_2X25: ("at start", "on delivery"),
    PaymentSchedule.SPLIT_3X33: ("at start", "midway", "on delivery"),
}


@dataclass(frozen=True)
class Installment:
    """One invoice of a payment schedule."""

    sequence: int
    label: str
    amount: Money


def split_total(total: Money, schedule: PaymentSchedule) -> tuple[Installment, ...]:
    """
    Split ``total`` according to ``schedule``.

    Raises:
        ValueError: If ``total`` is negative.
    """
    if total.is_negative:
        raise ValueError(f"Cannot split a negative total: {total}")

    shares = SCHEDULE_SHARES[schedule]
    labels = SCHEDULE_LABELS[schedule]

    installments: list[Installment] = []
    allocated = Money.zero(total.currency)
    for index, share in enumerate(shares):
        if index == len(shares) - 1:
            amount = total.round() - allocated
        else:
            amount = (total * share).round()
            allocated = allocated + amount
        installments.append(Installment(sequence=index + 1, label=labels[index], amount=amount))

    logger.debug("total_split", extra={
        "schedule": schedule.value,
        "total": str(total.amount),
        "installments": [str(i.amount.amount) for i in installments],
    })
    return tuple(installments)
