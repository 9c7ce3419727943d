"""
Module: offer_kernel.models.quote
Responsibility: ORM persistence for stored offer drafts and their lifecycle
    (the ``lead_quotes`` table).
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - quote_data holds a draft snapshot exactly as DraftCodec produced it.
    - Status changes follow ALLOWED_TRANSITIONS.

Failure modes:
    - ValueError from validate_transition() on a disallowed status change;
      the draft store translates it into InvalidQuoteTransitionError.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from offer_kernel.db.base import TrackedBase


class QuoteStatus(str, Enum):
    """Lifecycle status of a stored quote.

    Contract: draft -> sent -> accepted | rejected; a sent quote may go
    back to draft for revision. accepted and rejected are terminal.
    """

    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.DRAFT: frozenset({QuoteStatus.SENT}),
    QuoteStatus.SENT: frozenset({
        QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.DRAFT,
    }),
    # Terminal states
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
}


class LeadQuote(TrackedBase):
    """
    Offer draft stored for a lead.

    Contract:
        One row per quote. While a quote is in draft status, autosave
        updates the row in place; the latest save wins.
    """

    __tablename__ = "lead_quotes"

    __table_args__ = (
        Index("idx_lead_quotes_lead_key", "lead_key"),
        Index("idx_lead_quotes_status", "status"),
    )

    # Opaque session / lead identifier the draft is keyed by
    lead_key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    quote_data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    # Offer total at time of save (None when the draft had no package)
    total_price: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 2),
        nullable=True,
    )

    # Stored as the QuoteStatus value; status_enum gives the enum
    status: Mapped[str] = mapped_column(
        String(20),
        default=QuoteStatus.DRAFT.value,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def status_enum(self) -> QuoteStatus:
        """Return status as QuoteStatus."""
        return QuoteStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status_enum]

    def validate_transition(self, target: QuoteStatus) -> None:
        """Raise ValueError if ``target`` is not reachable from the current status."""
        allowed = ALLOWED_TRANSITIONS.get(self.status_enum, frozenset())
        if target not in allowed:
            raise ValueError(
                f"Invalid transition: {self.status_enum.value} -> {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

    def __repr__(self) -> str:
        return f"<LeadQuote {self.lead_key} {self.status_enum.value}>"
