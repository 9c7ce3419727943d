"""
offer_config -- single public entrypoint for the offer catalog.

Responsibility:
    Provides the ONLY way to obtain the catalog and pricing policy at
    runtime: ``get_active_catalog()``. No other component reads catalog
    files directly; the kernel receives the result by injection.

Architecture position:
    Configuration -- YAML-driven catalog sets. Sits above ``offer_kernel``;
    the kernel MUST NEVER import from ``offer_config``.

Invariants enforced:
    - The catalog and the policy share one currency.
    - Every quantity-linked option named by the policy exists in the
      catalog.
    - Same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the catalog set does not exist.
    - ``KeyError`` / ``ValueError`` -- malformed YAML content.
    - ``CatalogError`` -- duplicate ids or broken references.

Audit relevance:
    Every call emits an ``OFFER_CATALOG_TRACE`` log entry with the set name,
    checksum and entry counts, tying each priced offer to the catalog
    version that priced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from offer_config.exchange import export_catalog_json, import_catalog_json
from offer_config.loader import compute_checksum, load_yaml_file, parse_catalog, parse_policy
from offer_kernel.domain.catalog import PricingCatalog
from offer_kernel.domain.policy import PricingPolicy
from offer_kernel.exceptions import CatalogIntegrityError
from offer_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default catalog sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_SET = "default"


@dataclass(frozen=True)
class CatalogPack:
    """Catalog, policy and the checksum of the YAML they were built from."""

    catalog: PricingCatalog
    policy: PricingPolicy
    checksum: str
    set_name: str = DEFAULT_SET


def get_active_catalog(
    config_dir: Path | None = None,
    set_name: str = DEFAULT_SET,
) -> CatalogPack:
    """The ONLY public catalog entrypoint.

    Args:
        config_dir: Override path to the catalog sets directory.
            Defaults to offer_config/sets/.
        set_name: Name of the catalog set subdirectory.

    Returns:
        CatalogPack with a validated catalog and policy.
    """
    set_dir = (config_dir or _DEFAULT_CONFIG_DIR) / set_name
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Catalog set not found: {set_dir}")

    catalog_data = load_yaml_file(set_dir / "catalog.yaml")
    policy_data = load_yaml_file(set_dir / "policy.yaml")

    catalog = parse_catalog(catalog_data)
    policy = parse_policy(policy_data)

    if catalog.currency != policy.currency:
        raise ValueError(
            f"Catalog currency {catalog.currency} does not match policy currency {policy.currency}"
        )
    for link in policy.quantity_links:
        if catalog.get_option(link.option_id) is None:
            raise CatalogIntegrityError("policy", link.option_id, "quantity-linked option")

    checksum = compute_checksum({"catalog": catalog_data, "policy": policy_data})

    _logger.info(
        "OFFER_CATALOG_TRACE",
        extra={
            "trace_type": "OFFER_CATALOG_TRACE",
            "set_name": set_name,
            "checksum": checksum,
            "currency": catalog.currency.code,
            "package_count": len(catalog.list_packages()),
            "option_count": len(catalog.list_options()),
            "preset_count": len(catalog.list_presets()),
        },
    )

    return CatalogPack(catalog=catalog, policy=policy, checksum=checksum, set_name=set_name)


__all__ = [
    "CatalogPack",
    "export_catalog_json",
    "get_active_catalog",
    "import_catalog_json",
]
