"""ORM models for the offer kernel."""

from offer_kernel.models.quote import ALLOWED_TRANSITIONS, LeadQuote, QuoteStatus

__all__ = [
    "ALLOWED_TRANSITIONS",
    "LeadQuote",
    "QuoteStatus",
]
