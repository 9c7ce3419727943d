"""
DraftStore -- Persistence boundary for offer draft snapshots.

Responsibility:
    Saves and loads the snapshot produced by DraftCodec, keyed by an opaque
    session / lead key. Two implementations: InMemoryDraftStore for tests and
    single-process use, SqlDraftStore on the ``lead_quotes`` table.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by DraftAutosaver (save) and OfferSession (load at open).

Invariants enforced:
    - Last successful save wins: a draft is updated in place, never
      duplicated, while it is still in draft status.
    - save() reports failure as ``False``; it never raises for storage
      errors, so a failed autosave cannot disturb the editing session.

Failure modes:
    - load() raises DraftLoadError when the backend fails; "no draft" is
      ``None``, not an error.
    - transition() raises QuoteNotFoundError / InvalidQuoteTransitionError.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from offer_kernel.db.engine import session_scope
from offer_kernel.domain.clock import Clock, SystemClock
from offer_kernel.exceptions import (
    DraftLoadError,
    InvalidQuoteTransitionError,
    QuoteNotFoundError,
)
from offer_kernel.logging_config import get_logger
from offer_kernel.models.quote import LeadQuote, QuoteStatus

logger = get_logger("services.draft_store")


class DraftStore(ABC):
    """
    Key-value contract for draft snapshots.

    Contract:
        ``save`` returns True on success and False on failure. ``load``
        returns the most recently saved snapshot, or None when the key has
        none.
    """

    @abstractmethod
    def save(self, key: str, snapshot: dict[str, Any], total: Decimal | None = None) -> bool:
        ...

    @abstractmethod
    def load(self, key: str) -> dict[str, Any] | None:
        ...


class InMemoryDraftStore(DraftStore):
    """Process-local store. Snapshots are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._drafts: dict[str, dict[str, Any]] = {}
        self._totals: dict[str, Decimal | None] = {}
        self._lock = threading.Lock()
        self.save_count = 0

    def save(self, key: str, snapshot: dict[str, Any], total: Decimal | None = None) -> bool:
        with self._lock:
            self._drafts[key] = copy.deepcopy(snapshot)
            self._totals[key] = total
            self.save_count += 1
        logger.debug("draft_saved", extra={"lead_key": key, "backend": "memory"})
        return True

    def load(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            snapshot = self._drafts.get(key)
            return copy.deepcopy(snapshot) if snapshot is not None else None

    def total(self, key: str) -> Decimal | None:
        with self._lock:
            return self._totals.get(key)


class SqlDraftStore(DraftStore):
    """
    Draft store on the ``lead_quotes`` table.

    Each call runs in its own transaction (``session_scope``), so the store
    is safe to call from the autosave timer thread.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def _latest(self, session: Session, key: str, status: QuoteStatus | None = None) -> LeadQuote | None:
        stmt = select(LeadQuote).where(LeadQuote.lead_key == key)
        if status is not None:
            stmt = stmt.where(LeadQuote.status == status.value)
        stmt = stmt.order_by(LeadQuote.updated_at.desc()).limit(1)
        return session.execute(stmt).scalars().first()

    def save(self, key: str, snapshot: dict[str, Any], total: Decimal | None = None) -> bool:
        now = self._clock.now()
        try:
            with session_scope(self._session_factory) as session:
                quote = self._latest(session, key, QuoteStatus.DRAFT)
                if quote is None:
                    quote = LeadQuote(
                        lead_key=key,
                        quote_data=snapshot,
                        total_price=total,
                        status=QuoteStatus.DRAFT.value,
                        created_at=now,
                        updated_at=now,
                    )
                    session.add(quote)
                    created = True
                else:
                    quote.quote_data = snapshot
                    quote.total_price = total
                    quote.updated_at = now
                    created = False
        except SQLAlchemyError as exc:
            logger.error("draft_save_failed", extra={
                "lead_key": key,
                "error": str(exc),
            })
            return False

        logger.info("draft_saved", extra={
            "lead_key": key,
            "backend": "sql",
            "draft_created": created,
            "total": str(total) if total is not None else None,
        })
        return True

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            with session_scope(self._session_factory) as session:
                quote = self._latest(session, key)
                snapshot = dict(quote.quote_data) if quote is not None else None
        except SQLAlchemyError as exc:
            logger.error("draft_load_failed", extra={"lead_key": key, "error": str(exc)})
            raise DraftLoadError(key, str(exc)) from exc

        logger.debug("draft_loaded", extra={"lead_key": key, "found": snapshot is not None})
        return snapshot

    def status(self, key: str) -> QuoteStatus | None:
        """Status of the latest stored quote for ``key``."""
        with session_scope(self._session_factory) as session:
            quote = self._latest(session, key)
            return quote.status_enum if quote is not None else None

    def transition(self, key: str, target: QuoteStatus, notes: str | None = None) -> QuoteStatus:
        """
        Move the latest quote for ``key`` to ``target``.

        Raises:
            QuoteNotFoundError: No quote stored for ``key``.
            InvalidQuoteTransitionError: ``target`` not allowed from the
                current status.
        """
        now = self._clock.now()
        with session_scope(self._session_factory) as session:
            quote = self._latest(session, key)
            if quote is None:
                raise QuoteNotFoundError(key)
            current = quote.status_enum
            try:
                quote.validate_transition(target)
            except ValueError as exc:
                logger.warning("quote_transition_rejected", extra={
                    "lead_key": key,
                    "from_status": current.value,
                    "to_status": target.value,
                })
                raise InvalidQuoteTransitionError(key, current.value, target.value) from exc

            quote.status = target.value
            quote.updated_at = now
            if target == QuoteStatus.SENT:
                quote.sent_at = now
            if notes is not None:
                quote.notes = notes

        logger.info("quote_status_changed", extra={
            "lead_key": key,
            "from_status": current.value,
            "to_status": target.value,
        })
        return target
