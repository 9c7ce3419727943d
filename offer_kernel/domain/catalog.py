"""
Catalog -- Read-only lookup surface for packages, options and presets.

Responsibility:
    Holds the fixed set of base packages and add-on options an offer is
    assembled from, and answers the eligibility question: which add-ons may
    be combined with a given package.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Built by offer_config (YAML / JSON) and injected into OfferBuilder,
    DraftCodec and the offer session. Nothing reads a module-level catalog.

Invariants enforced:
    - Package ids are unique catalog-wide.
    - Option ids are unique catalog-wide.
    - Every preset names an existing package and options eligible for it.
    - All catalog prices share the catalog currency.

Failure modes:
    - DuplicateCatalogIdError on repeated ids at construction.
    - CatalogIntegrityError when a preset references an unknown or
      ineligible id.
    - Lookups never raise: unknown ids return None or an empty tuple.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

from offer_kernel.domain.values import Currency, Money
from offer_kernel.exceptions import CatalogIntegrityError, DuplicateCatalogIdError


class PackageCategory(str, Enum):
    """Tier of a base package."""

    WEBSITE = "website"
    WEBSHOP = "webshop"
    WEBAPP = "webapp"


class OptionCategory(str, Enum):
    """Group an add-on option is listed under."""

    SCOPE = "scope"
    COMPLEXITY = "complexity"
    GROWTH = "growth"
    MAINTENANCE = "maintenance"


ALL_PACKAGE_CATEGORIES: frozenset[PackageCategory] = frozenset(PackageCategory)


@dataclass(frozen=True)
class FixedPrice:
    """Catalog price that applies as-is."""

    amount: Money

    def __post_init__(self) -> None:
        if not self.amount.is_positive:
            raise ValueError(f"Fixed price must be positive, got {self.amount}")

    @property
    def is_negotiable(self) -> bool:
        return False


@dataclass(frozen=True)
class NegotiablePrice:
    """Price agreed per quote ("on request").

    The catalog carries no amount; the configuration supplies the negotiated
    amount the user entered. An option with this price is not free.
    """

    @property
    def is_negotiable(self) -> bool:
        return True


OptionPrice = Union[FixedPrice, NegotiablePrice]


@dataclass(frozen=True)
class Package:
    """Fixed-price base offering. Exactly one (or none) is selected per offer."""

    id: str
    name: str
    base_price: Money
    category: PackageCategory
    description: str = ""
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class Option:
    """
    Add-on option.

    ``package_categories`` lists the package tiers the option may be added
    to; ``excluded_packages`` lists package ids that already include the
    feature, so offering it again would bill it twice.
    """

    id: str
    name: str
    price: OptionPrice
    category: OptionCategory
    description: str = ""
    package_categories: frozenset[PackageCategory] = ALL_PACKAGE_CATEGORIES
    excluded_packages: frozenset[str] = frozenset()

    @property
    def is_recurring(self) -> bool:
        """Maintenance plans are billed monthly, everything else once."""
        return self.category == OptionCategory.MAINTENANCE

    @property
    def is_negotiable(self) -> bool:
        return self.price.is_negotiable

    def is_eligible_for(self, package: Package | None) -> bool:
        if package is None or self.is_recurring:
            return False
        if package.id in self.excluded_packages:
            return False
        return package.category in self.package_categories


@dataclass(frozen=True)
class Preset:
    """Named package + option bundle applied in one step."""

    id: str
    name: str
    package_id: str
    option_ids: tuple[str, ...] = ()
    description: str = ""


class PricingCatalog:
    """
    Immutable catalog of packages, options and presets.

    Contract:
        Lookup methods return catalog objects by identity, so a configuration
        holding an Option from this catalog compares equal to the catalog's
        own entry.

    Guarantees:
        - Listing methods preserve definition order.
        - eligible_options(None) is empty: without a package nothing can be
          added.
    """

    def __init__(
        self,
        packages: Iterable[Package],
        options: Iterable[Option],
        presets: Iterable[Preset] = (),
        currency: str | Currency = "EUR",
    ):
        self._currency = currency if isinstance(currency, Currency) else Currency(currency)
        self._packages: dict[str, Package] = {}
        self._options: dict[str, Option] = {}
        self._presets: dict[str, Preset] = {}

        for package in packages:
            if package.id in self._packages:
                raise DuplicateCatalogIdError("package", package.id)
            self._check_currency(package.id, package.base_price)
            self._packages[package.id] = package

        for option in options:
            if option.id in self._options:
                raise DuplicateCatalogIdError("option", option.id)
            if isinstance(option.price, FixedPrice):
                self._check_currency(option.id, option.price.amount)
            for excluded in option.excluded_packages:
                if excluded not in self._packages:
                    raise CatalogIntegrityError(option.id, excluded, "excluded package")
            self._options[option.id] = option

        for preset in presets:
            if preset.id in self._presets:
                raise DuplicateCatalogIdError("preset", preset.id)
            self._validate_preset(preset)
            self._presets[preset.id] = preset

    def _check_currency(self, entry_id: str, amount: Money) -> None:
        if amount.currency != self._currency:
            raise ValueError(
                f"{entry_id} is priced in {amount.currency}, catalog currency is {self._currency}"
            )

    def _validate_preset(self, preset: Preset) -> None:
        package = self._packages.get(preset.package_id)
        if package is None:
            raise CatalogIntegrityError(preset.id, preset.package_id, "unknown package")
        for option_id in preset.option_ids:
            option = self._options.get(option_id)
            if option is None:
                raise CatalogIntegrityError(preset.id, option_id, "unknown option")
            if not option.is_eligible_for(package):
                raise CatalogIntegrityError(
                    preset.id, option_id, f"not eligible for {package.id}"
                )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def currency(self) -> Currency:
        return self._currency

    def get_package(self, package_id: str) -> Package | None:
        return self._packages.get(package_id)

    def get_option(self, option_id: str) -> Option | None:
        return self._options.get(option_id)

    def get_preset(self, preset_id: str) -> Preset | None:
        return self._presets.get(preset_id)

    def list_packages(self, category: PackageCategory | None = None) -> tuple[Package, ...]:
        return tuple(
            p for p in self._packages.values() if category is None or p.category == category
        )

    def list_options(self, category: OptionCategory | None = None) -> tuple[Option, ...]:
        return tuple(
            o for o in self._options.values() if category is None or o.category == category
        )

    def list_presets(self) -> tuple[Preset, ...]:
        return tuple(self._presets.values())

    def options_by_category(self) -> dict[OptionCategory, tuple[Option, ...]]:
        """Options grouped by category, every category present (possibly empty)."""
        return {category: self.list_options(category) for category in OptionCategory}

    def maintenance_options(self) -> tuple[Option, ...]:
        return self.list_options(OptionCategory.MAINTENANCE)

    # -------------------------------------------------------------------------
    # Eligibility
    # -------------------------------------------------------------------------

    def eligible_options(self, package: Package | None) -> tuple[Option, ...]:
        """Add-on options that may be selected together with ``package``."""
        if package is None:
            return ()
        return tuple(o for o in self._options.values() if o.is_eligible_for(package))

    def eligible_option_ids(self, package: Package | None) -> frozenset[str]:
        return frozenset(o.id for o in self.eligible_options(package))

    def is_eligible(self, option: Option, package: Package | None) -> bool:
        """True when ``option`` is a catalog option selectable under ``package``."""
        if self._options.get(option.id) is None:
            return False
        return option.is_eligible_for(package)

    def __len__(self) -> int:
        return len(self._packages) + len(self._options)

    def __repr__(self) -> str:
        return (
            f"PricingCatalog(packages={len(self._packages)}, "
            f"options={len(self._options)}, presets={len(self._presets)}, "
            f"currency={self._currency.code!r})"
        )
