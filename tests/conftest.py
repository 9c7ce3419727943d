"""
Pytest fixtures for the offer kernel test suite.

Provides:
- Structured logging setup and log capture
- A small fixture catalog and the standard pricing policy
- Builder, codec and calculator wired to the fixture catalog
- In-memory SQLite session factory for draft store tests
- Manual timers for deterministic autosave tests
"""

import json
import logging
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from offer_engines.pricing import PricingCalculator
from offer_kernel.db.base import Base
from offer_kernel.domain.catalog import (
    FixedPrice,
    NegotiablePrice,
    Option,
    OptionCategory,
    Package,
    PackageCategory,
    Preset,
    PricingCatalog,
)
from offer_kernel.domain.clock import DeterministicClock
from offer_kernel.domain.configuration import OfferConfiguration
from offer_kernel.domain.draft_codec import DraftCodec
from offer_kernel.domain.mutators import OfferBuilder
from offer_kernel.domain.policy import PricingPolicy
from offer_kernel.domain.values import Money
from offer_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
)
import offer_kernel.models  # noqa: F401  (registers lead_quotes on Base.metadata)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    configure_logging(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture offer_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, builder, empty):
            builder.set_extra_pages(empty, 3)
            logs = captured_logs()
            assert any(r["message"] == "mutation_refused" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("offer_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Catalog and policy
# =============================================================================


def eur(amount) -> Money:
    return Money.of(str(amount), "EUR")


@pytest.fixture
def policy() -> PricingPolicy:
    """EUR, 21 % VAT, 5/10/15 % discounts, 125 per extra/content page."""
    return PricingPolicy.standard()


@pytest.fixture
def catalog() -> PricingCatalog:
    """
    Fixture catalog.

    Packages:
        starter  website  700
        shop     webshop 2000
        premium  website 3000 (pages included: extra-pages excluded)
    Options:
        design-pack       scope       400  any package
        blog              scope       350  website only
        extra-pages       scope       125  website/webshop, not premium
        integration       complexity  negotiable
        shop-sync         complexity  900  webshop only
        content-creation  growth      125
        care-basic        maintenance 19.99
        care-plus         maintenance 49.99
    """
    website = frozenset({PackageCategory.WEBSITE})
    return PricingCatalog(
        packages=[
            Package("starter", "Starter", eur(700), PackageCategory.WEBSITE),
            Package("shop", "Shop", eur(2000), PackageCategory.WEBSHOP),
            Package("premium", "Premium", eur(3000), PackageCategory.WEBSITE),
        ],
        options=[
            Option("design-pack", "Design pack", FixedPrice(eur(400)), OptionCategory.SCOPE),
            Option(
                "blog", "Blog", FixedPrice(eur(350)), OptionCategory.SCOPE,
                package_categories=website,
            ),
            Option(
                "extra-pages", "Extra pages", FixedPrice(eur(125)), OptionCategory.SCOPE,
                package_categories=frozenset({PackageCategory.WEBSITE, PackageCategory.WEBSHOP}),
                excluded_packages=frozenset({"premium"}),
            ),
            Option("integration", "Integration", NegotiablePrice(), OptionCategory.COMPLEXITY),
            Option(
                "shop-sync", "Shop sync", FixedPrice(eur(900)), OptionCategory.COMPLEXITY,
                package_categories=frozenset({PackageCategory.WEBSHOP}),
            ),
            Option(
                "content-creation", "Content", FixedPrice(eur(125)), OptionCategory.GROWTH,
            ),
            Option(
                "care-basic", "Care basic", FixedPrice(eur("19.99")), OptionCategory.MAINTENANCE,
            ),
            Option(
                "care-plus", "Care plus", FixedPrice(eur("49.99")), OptionCategory.MAINTENANCE,
            ),
        ],
        presets=[
            Preset("starter-design", "Starter + design", "starter", ("design-pack", "blog")),
            Preset("shop-launch", "Shop launch", "shop", ("shop-sync", "content-creation")),
        ],
    )


@pytest.fixture
def builder(catalog, policy) -> OfferBuilder:
    return OfferBuilder(catalog, policy)


@pytest.fixture
def codec(catalog, policy) -> DraftCodec:
    return DraftCodec(catalog, policy)


@pytest.fixture
def calculator(policy) -> PricingCalculator:
    return PricingCalculator(policy)


@pytest.fixture
def empty() -> OfferConfiguration:
    return OfferConfiguration.empty()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Persistence
# =============================================================================


@pytest.fixture
def sql_session_factory():
    """Session factory on a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


# =============================================================================
# Timers
# =============================================================================


class ManualTimer:
    """Timer that only runs when the test calls ``trigger()``."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def is_live(self) -> bool:
        return self.started and not self.cancelled and not self.fired

    def trigger(self):
        self.fired = True
        return self.function()


@pytest.fixture
def timers():
    """Records every timer the autosaver creates; ``timers.factory`` is injectable."""

    class _Timers(list):
        def factory(self, interval, function):
            timer = ManualTimer(interval, function)
            self.append(timer)
            return timer

        @property
        def live(self) -> list:
            return [t for t in self if t.is_live]

    return _Timers()
