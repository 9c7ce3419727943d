"""
Catalog JSON exchange.

Round-trips a PricingCatalog through a JSON document so prices can be
reviewed and updated outside the YAML sets. The document keeps one list per
option category (``scopeOptions``, ``complexityOptions``, ``growthOptions``,
``maintenanceOptions``) next to ``packages`` and ``presets``; entries use the
same keys as ``catalog.yaml``.

Import validates the structure before building the catalog and reports every
problem as CatalogImportError.
"""

from __future__ import annotations

import json
from typing import Any

from offer_config.loader import NEGOTIABLE, parse_catalog
from offer_kernel.domain.catalog import (
    ALL_PACKAGE_CATEGORIES,
    FixedPrice,
    Option,
    OptionCategory,
    Package,
    PricingCatalog,
)
from offer_kernel.exceptions import CatalogError, CatalogImportError
from offer_kernel.logging_config import get_logger

logger = get_logger("config.exchange")

OPTION_SECTIONS: dict[OptionCategory, str] = {
    OptionCategory.SCOPE: "scopeOptions",
    OptionCategory.COMPLEXITY: "complexityOptions",
    OptionCategory.GROWTH: "growthOptions",
    OptionCategory.MAINTENANCE: "maintenanceOptions",
}


def _package_entry(package: Package) -> dict[str, Any]:
    return {
        "id": package.id,
        "name": package.name,
        "category": package.category.value,
        "base_price": str(package.base_price.amount),
        "description": package.description,
        "features": list(package.features),
    }


def _option_entry(option: Option) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": option.id,
        "name": option.name,
        "category": option.category.value,
        "price": (
            str(option.price.amount.amount)
            if isinstance(option.price, FixedPrice)
            else NEGOTIABLE
        ),
        "description": option.description,
    }
    if option.package_categories != ALL_PACKAGE_CATEGORIES:
        entry["package_categories"] = sorted(c.value for c in option.package_categories)
    if option.excluded_packages:
        entry["excluded_packages"] = sorted(option.excluded_packages)
    return entry


def catalog_to_document(catalog: PricingCatalog) -> dict[str, Any]:
    """Plain-dict form of ``catalog``."""
    document: dict[str, Any] = {
        "currency": catalog.currency.code,
        "packages": [_package_entry(p) for p in catalog.list_packages()],
    }
    for category, section in OPTION_SECTIONS.items():
        document[section] = [_option_entry(o) for o in catalog.list_options(category)]
    document["presets"] = [
        {
            "id": preset.id,
            "name": preset.name,
            "description": preset.description,
            "package_id": preset.package_id,
            "option_ids": list(preset.option_ids),
        }
        for preset in catalog.list_presets()
    ]
    return document


def export_catalog_json(catalog: PricingCatalog) -> str:
    """Pretty-printed JSON document of ``catalog``."""
    return json.dumps(catalog_to_document(catalog), indent=2, ensure_ascii=False)


def import_catalog_json(text: str) -> PricingCatalog:
    """
    Build a PricingCatalog from a JSON document.

    Raises:
        CatalogImportError: invalid JSON, a missing or non-list section, or
            an entry the catalog rejects.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CatalogImportError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise CatalogImportError("document is not an object")

    for section in ("packages", *OPTION_SECTIONS.values()):
        if not isinstance(data.get(section), list):
            raise CatalogImportError(f"{section} missing or not an array")
    if "presets" in data and not isinstance(data["presets"], list):
        raise CatalogImportError("presets is not an array")

    options: list[dict[str, Any]] = []
    for category, section in OPTION_SECTIONS.items():
        for entry in data[section]:
            if not isinstance(entry, dict):
                raise CatalogImportError(f"{section} contains a non-object entry")
            options.append({"category": category.value, **entry})

    try:
        catalog = parse_catalog({
            "currency": data.get("currency", "EUR"),
            "packages": data["packages"],
            "options": options,
            "presets": data.get("presets", []),
        })
    except (KeyError, ValueError, TypeError, CatalogError) as exc:
        raise CatalogImportError(f"{type(exc).__name__}: {exc}") from exc

    logger.info("catalog_imported", extra={
        "package_count": len(catalog.list_packages()),
        "option_count": len(catalog.list_options()),
        "preset_count": len(catalog.list_presets()),
    })
    return catalog
