"""
DraftAutosaver -- Debounced draft persistence for one editing session.

Contract:
    ``notify(config)`` records the latest configuration and (re)arms a quiet
    period timer. When the timer fires without further notifications, the
    latest configuration is serialized and saved. Rapid successive edits
    therefore produce a single save.

Architecture: offer_kernel/services. Decoupled from the mutators: the pure
    configuration and pricing code has no timing dependency; the session
    feeds this scheduler after every successful mutation.

Invariants enforced:
    - At most one save in flight per session. A notification that arrives
      during a save marks the session dirty; a follow-up save of the latest
      state runs as soon as the current one finishes. Intermediate states
      are not required to be saved.
    - A failed save never touches the in-memory configuration. The failure
      is logged and the timer re-armed, so the next quiet period retries.
    - Configurations without a base package are not saved.
    - After ``stop()`` no further saves are scheduled.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Protocol

from offer_engines.pricing import PricingCalculator
from offer_kernel.domain.clock import Clock, SystemClock
from offer_kernel.domain.configuration import OfferConfiguration
from offer_kernel.domain.draft_codec import DraftCodec
from offer_kernel.logging_config import get_logger
from offer_kernel.services.draft_store import DraftStore

logger = get_logger("services.autosave")


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    """Default timer factory: a daemon ``threading.Timer``."""
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class DraftAutosaver:
    """Debounce scheduler with a single in-flight guard.

    Contract:
        - ``notify()`` is called by the single writer (the session).
        - ``fire()`` is called by the timer thread; it is public for tests.
        - ``flush()`` saves synchronously, bypassing the quiet period; it
          waits for a save already in flight rather than overlapping it.
        - ``stop()`` cancels the pending timer and refuses new scheduling.

    Non-goals:
        - Does NOT retry with backoff; retry is the next debounce cycle.
        - Does NOT guarantee every intermediate state is stored.
    """

    def __init__(
        self,
        key: str,
        store: DraftStore,
        codec: DraftCodec,
        calculator: PricingCalculator,
        quiet_seconds: float = 2.0,
        timer_factory: TimerFactory | None = None,
        clock: Clock | None = None,
    ):
        self._key = key
        self._store = store
        self._codec = codec
        self._calculator = calculator
        self._quiet_seconds = quiet_seconds
        self._timer_factory = timer_factory or daemon_timer
        self._clock = clock or SystemClock()

        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._timer: Timer | None = None
        self._latest: OfferConfiguration | None = None
        self._dirty = False
        self._in_flight = False
        self._stopped = False

        self.save_count = 0
        self.failure_count = 0
        self.last_saved_at: datetime | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def is_pending(self) -> bool:
        """True while a state change is waiting to be saved."""
        with self._lock:
            return self._dirty

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def notify(self, config: OfferConfiguration) -> None:
        """Record ``config`` as the latest state and restart the quiet period."""
        with self._lock:
            if self._stopped:
                logger.debug("autosave_notify_after_stop", extra={"lead_key": self._key})
                return
            self._latest = config
            self._dirty = True
            self._arm_locked()

    def fire(self) -> bool:
        """Save the latest state if it changed (public for testing).

        Returns True when at least one save succeeded during this call.
        """
        with self._cond:
            if self._in_flight or not self._dirty:
                # A running save picks up the latest state when it finishes.
                return False
            self._in_flight = True
        return self._drain()

    def flush(self) -> bool:
        """Cancel the quiet period and save now.

        Waits for a save already in flight instead of overlapping it.
        Returns True when no change is left unsaved.
        """
        with self._cond:
            self._cancel_locked()
            while self._in_flight:
                self._cond.wait()
            self._cancel_locked()
            if not self._dirty:
                return True
            self._in_flight = True
        self._drain()
        with self._cond:
            return not self._dirty

    def stop(self, flush: bool = False) -> None:
        """Stop scheduling saves, optionally saving pending state first."""
        if flush:
            self.flush()
        with self._lock:
            self._stopped = True
            self._cancel_locked()
        logger.info("autosave_stopped", extra={
            "lead_key": self._key,
            "save_count": self.save_count,
            "failure_count": self.failure_count,
        })

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _release_locked(self) -> None:
        self._in_flight = False
        self._cond.notify_all()

    def _drain(self) -> bool:
        """Save until no change is pending; the caller holds the in-flight slot.

        The last pending check and the release of the slot happen under one
        lock, so a notification can never land between them unseen.
        """
        saved = False
        try:
            while True:
                with self._cond:
                    if not self._dirty:
                        self._release_locked()
                        return saved
                    # This save covers whatever the armed timer would have saved.
                    self._cancel_locked()
                    config = self._latest
                    self._dirty = False

                if self._save(config):
                    saved = True
                    continue

                with self._cond:
                    self._dirty = True
                    if not self._stopped:
                        self._arm_locked()
                    self._release_locked()
                return saved
        except BaseException:
            with self._cond:
                self._dirty = True
                self._release_locked()
            raise

    def _arm_locked(self) -> None:
        self._cancel_locked()
        timer = self._timer_factory(self._quiet_seconds, self.fire)
        self._timer = timer
        timer.start()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _save(self, config: OfferConfiguration | None) -> bool:
        """Serialize and store ``config``. Returns False on failure."""
        if config is None or not config.is_valid:
            logger.debug("autosave_skipped_incomplete", extra={"lead_key": self._key})
            return True

        try:
            snapshot = self._codec.serialize(config)
            total = self._calculator.calculate(config).total.amount
            ok = self._store.save(self._key, snapshot, total)
        except Exception:
            logger.exception("draft_autosave_failed", extra={"lead_key": self._key})
            ok = False

        if not ok:
            self.failure_count += 1
            logger.warning("draft_autosave_retry_scheduled", extra={
                "lead_key": self._key,
                "failure_count": self.failure_count,
            })
            return False

        self.save_count += 1
        self.last_saved_at = self._clock.now()
        logger.info("draft_autosaved", extra={
            "lead_key": self._key,
            "total": str(total),
            "save_count": self.save_count,
        })
        return True
