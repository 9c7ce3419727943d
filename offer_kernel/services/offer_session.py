"""
OfferSession -- One interactive editing session over an offer.

Responsibility:
    Owns the current OfferConfiguration for a session key, applies mutations
    through OfferBuilder, prices on demand, and feeds every change to the
    DraftAutosaver. The editing surface (UI, API, CLI) talks to this class
    by catalog id.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain.

Invariants enforced:
    - The stored draft is loaded exactly once, in ``open()``, before any
      mutation can be applied; a slow restore can never overwrite an edit.
    - Single writer: the session is the only holder of the configuration.
    - A failed load starts the session empty instead of blocking it.

Failure modes:
    - OfferIncompleteError from finalize()/export() without a base package.
"""

from __future__ import annotations

from typing import Any

from offer_engines.pricing import PriceBreakdown, PricingCalculator
from offer_kernel.domain.catalog import PricingCatalog
from offer_kernel.domain.clock import Clock, SystemClock
from offer_kernel.domain.configuration import DiscountType, OfferConfiguration, PaymentSchedule
from offer_kernel.domain.draft_codec import DraftCodec
from offer_kernel.domain.mutators import OfferBuilder
from offer_kernel.domain.policy import PricingPolicy
from offer_kernel.exceptions import DraftStoreError, OfferIncompleteError
from offer_kernel.logging_config import LogContext, get_logger
from offer_kernel.services.autosave import DraftAutosaver, TimerFactory
from offer_kernel.services.draft_store import DraftStore
from offer_kernel.services.quote_export import CustomerInfo, build_quote_export

logger = get_logger("services.offer_session")


class OfferSession:
    """
    Editing session bound to one draft key.

    Contract:
        Create with ``OfferSession.open()``. Mutating methods return the new
        configuration; a refused mutation returns the unchanged one and does
        not trigger an autosave.
    """

    def __init__(
        self,
        key: str,
        builder: OfferBuilder,
        codec: DraftCodec,
        calculator: PricingCalculator,
        autosaver: DraftAutosaver,
        configuration: OfferConfiguration,
        clock: Clock,
    ):
        self._key = key
        self._builder = builder
        self._codec = codec
        self._calculator = calculator
        self._autosaver = autosaver
        self._config = configuration
        self._clock = clock
        self._closed = False

    @classmethod
    def open(
        cls,
        key: str,
        catalog: PricingCatalog,
        policy: PricingPolicy,
        store: DraftStore,
        clock: Clock | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> OfferSession:
        """Restore the draft for ``key`` (if any) and return a ready session."""
        clock = clock or SystemClock()
        builder = OfferBuilder(catalog, policy)
        codec = DraftCodec(catalog, policy)
        calculator = PricingCalculator(policy)

        config = OfferConfiguration.empty()
        with LogContext.bind(session_key=key):
            try:
                snapshot = store.load(key)
            except DraftStoreError as exc:
                logger.warning("draft_load_failed", extra={"lead_key": key, "error": str(exc)})
                snapshot = None

            if snapshot is not None:
                result = codec.deserialize(snapshot)
                config = builder.load_state(config, result.patch)
                logger.info("draft_restored", extra={
                    "lead_key": key,
                    "dropped_count": len(result.dropped),
                    "is_valid": config.is_valid,
                })
            else:
                logger.info("session_started_empty", extra={"lead_key": key})

        autosaver = DraftAutosaver(
            key,
            store,
            codec,
            calculator,
            quiet_seconds=policy.autosave_quiet_seconds,
            timer_factory=timer_factory,
            clock=clock,
        )
        return cls(key, builder, codec, calculator, autosaver, config, clock)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def key(self) -> str:
        return self._key

    @property
    def configuration(self) -> OfferConfiguration:
        return self._config

    @property
    def catalog(self) -> PricingCatalog:
        return self._builder.catalog

    @property
    def autosaver(self) -> DraftAutosaver:
        return self._autosaver

    @property
    def is_valid(self) -> bool:
        return self._config.is_valid

    @property
    def breakdown(self) -> PriceBreakdown:
        return self._calculator.calculate(self._config)

    def snapshot(self) -> dict[str, Any]:
        return self._codec.serialize(self._config)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _commit(self, config: OfferConfiguration) -> OfferConfiguration:
        if config is not self._config and not self._closed:
            self._config = config
            self._autosaver.notify(config)
        return self._config

    def _refuse_unknown(self, kind: str, entry_id: str) -> OfferConfiguration:
        logger.debug("mutation_refused", extra={
            "operation": f"select_{kind}",
            "reason": f"unknown_{kind}",
            f"{kind}_id": entry_id,
        })
        return self._config

    def select_package(self, package_id: str | None) -> OfferConfiguration:
        if package_id is None:
            return self._commit(self._builder.set_package(self._config, None))
        package = self.catalog.get_package(package_id)
        if package is None:
            return self._refuse_unknown("package", package_id)
        return self._commit(self._builder.set_package(self._config, package))

    def toggle_option(self, option_id: str) -> OfferConfiguration:
        option = self.catalog.get_option(option_id)
        if option is None:
            return self._refuse_unknown("option", option_id)
        return self._commit(self._builder.toggle_option(self._config, option))

    def set_custom_price(self, option_id: str, amount: Any) -> OfferConfiguration:
        return self._commit(self._builder.set_custom_price(self._config, option_id, amount))

    def set_option_note(self, option_id: str, text: str) -> OfferConfiguration:
        return self._commit(self._builder.set_option_note(self._config, option_id, text))

    def set_extra_pages(self, qty: Any) -> OfferConfiguration:
        return self._commit(self._builder.set_extra_pages(self._config, qty))

    def set_content_pages(self, qty: Any) -> OfferConfiguration:
        return self._commit(self._builder.set_content_pages(self._config, qty))

    def select_maintenance(self, option_id: str | None) -> OfferConfiguration:
        if option_id is None:
            return self._commit(self._builder.set_maintenance(self._config, None))
        option = self.catalog.get_option(option_id)
        if option is None:
            return self._refuse_unknown("option", option_id)
        return self._commit(self._builder.set_maintenance(self._config, option))

    def add_custom_line_item(self, name: str, price: Any) -> OfferConfiguration:
        return self._commit(self._builder.add_custom_line_item(self._config, name, price))

    def update_custom_line_item(self, item_id: str, name: str, price: Any) -> OfferConfiguration:
        return self._commit(
            self._builder.update_custom_line_item(self._config, item_id, name, price)
        )

    def remove_custom_line_item(self, item_id: str) -> OfferConfiguration:
        return self._commit(self._builder.remove_custom_line_item(self._config, item_id))

    def set_discount(
        self, discount_type: DiscountType | str | None, value: Any = 0
    ) -> OfferConfiguration:
        return self._commit(self._builder.set_discount(self._config, discount_type, value))

    def set_payment_schedule(self, schedule: PaymentSchedule | str) -> OfferConfiguration:
        return self._commit(self._builder.set_payment_schedule(self._config, schedule))

    def set_scope_description(self, text: str) -> OfferConfiguration:
        return self._commit(self._builder.set_scope_description(self._config, text))

    def set_timeline(self, text: str) -> OfferConfiguration:
        return self._commit(self._builder.set_timeline(self._config, text))

    def apply_preset(self, preset_id: str) -> OfferConfiguration:
        return self._commit(self._builder.apply_preset(self._config, preset_id))

    def reset(self) -> OfferConfiguration:
        return self._commit(self._builder.reset(self._config))

    # -------------------------------------------------------------------------
    # Finishing
    # -------------------------------------------------------------------------

    def finalize(self) -> bool:
        """
        Save the current offer now.

        Raises:
            OfferIncompleteError: No base package selected.
        """
        if not self._config.is_valid:
            raise OfferIncompleteError("save")
        # Pending state is already queued; an unchanged session still saves.
        self._autosaver.notify(self._config)
        return self._autosaver.flush()

    def export(
        self, customer: CustomerInfo | None = None, quote_id: str | None = None
    ) -> dict[str, Any]:
        """Quote export document for the current offer."""
        return build_quote_export(
            self._config,
            self.breakdown,
            customer=customer,
            quote_id=quote_id,
            clock=self._clock,
        )

    def close(self, flush: bool = True) -> None:
        """End the session: save pending state (by default) and stop autosave."""
        if self._closed:
            return
        self._autosaver.stop(flush=flush)
        self._closed = True
        logger.info("session_closed", extra={"lead_key": self._key})
