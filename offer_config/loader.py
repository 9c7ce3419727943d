"""
Configuration Loader (``offer_config.loader``).

Responsibility
--------------
Loads the YAML files of a catalog set and parses them into the kernel's
domain objects (Package, Option, Preset, PricingPolicy, PricingCatalog).
Runtime callers go through ``offer_config.get_active_catalog()``; the JSON
exchange format reuses the same ``parse_*`` functions.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Amounts are parsed with ``Decimal(str(value))``; floats never reach Money.
* ``compute_checksum`` produces a deterministic SHA-256 hash for catalog
  identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown category, bad amount  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

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
from offer_kernel.domain.policy import PricingPolicy, QuantityCounter, QuantityLink
from offer_kernel.domain.values import Currency, Money

NEGOTIABLE = "negotiable"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a YAML/JSON scalar into a Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field_name}: expected a finite number, got {value!r}")
    return result


def parse_money(value: Any, currency: Currency, field_name: str) -> Money:
    return Money(amount=parse_decimal(value, field_name), currency=currency)


def parse_option_price(value: Any, currency: Currency, option_id: str) -> OptionPrice:
    """``"negotiable"`` (or a legacy 0) -> NegotiablePrice; else FixedPrice."""
    if isinstance(value, str) and value.strip().lower() == NEGOTIABLE:
        return NegotiablePrice()
    amount = parse_money(value, currency, f"option {option_id} price")
    if amount.is_zero:
        return NegotiablePrice()
    return FixedPrice(amount)


def parse_package(data: dict[str, Any], currency: Currency) -> Package:
    """Parse a Package from a dict."""
    package_id = data["id"]
    return Package(
        id=package_id,
        name=data["name"],
        base_price=parse_money(data["base_price"], currency, f"package {package_id} base_price"),
        category=PackageCategory(data["category"]),
        description=data.get("description", ""),
        features=tuple(data.get("features", ())),
    )


def parse_option(data: dict[str, Any], currency: Currency) -> Option:
    """Parse an Option from a dict."""
    option_id = data["id"]
    categories = data.get("package_categories")
    return Option(
        id=option_id,
        name=data["name"],
        price=parse_option_price(data["price"], currency, option_id),
        category=OptionCategory(data["category"]),
        description=data.get("description", ""),
        package_categories=(
            frozenset(PackageCategory(c) for c in categories)
            if categories is not None
            else ALL_PACKAGE_CATEGORIES
        ),
        excluded_packages=frozenset(data.get("excluded_packages", ())),
    )


def parse_preset(data: dict[str, Any]) -> Preset:
    """Parse a Preset from a dict."""
    return Preset(
        id=data["id"],
        name=data["name"],
        package_id=data["package_id"],
        option_ids=tuple(data.get("option_ids", ())),
        description=data.get("description", ""),
    )


def parse_catalog(data: dict[str, Any]) -> PricingCatalog:
    """
    Build a PricingCatalog from a parsed catalog document.

    Raises:
        KeyError: a required key is missing.
        ValueError: a value is invalid.
        CatalogError: duplicate ids or broken references.
    """
    currency = Currency(data.get("currency", "EUR"))
    return PricingCatalog(
        packages=[parse_package(p, currency) for p in data["packages"]],
        options=[parse_option(o, currency) for o in data["options"]],
        presets=[parse_preset(p) for p in data.get("presets", ())],
        currency=currency,
    )


def parse_policy(data: dict[str, Any]) -> PricingPolicy:
    """Parse a PricingPolicy from a dict."""
    currency = Currency(data["currency"])
    links = tuple(
        QuantityLink(
            option_id=item["option_id"],
            counter=QuantityCounter(item["counter"]),
            unit_price=parse_money(item["unit_price"], currency, f"{item['option_id']} unit_price"),
        )
        for item in data.get("quantity_linked_options", ())
    )
    return PricingPolicy(
        currency=currency,
        tax_rate=parse_decimal(data["tax_rate"], "tax_rate"),
        allowed_discount_percentages=frozenset(
            parse_decimal(p, "allowed_discount_percentages")
            for p in data.get("allowed_discount_percentages", ())
        ),
        quantity_links=links,
        autosave_quiet_seconds=float(data.get("autosave_quiet_seconds", 2.0)),
        max_quantity=int(data.get("max_quantity", 1000)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
