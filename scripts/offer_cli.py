#!/usr/bin/env python3
"""
Offer catalog and quote command line.

Usage:
    python scripts/offer_cli.py catalog export > pricing.json
    python scripts/offer_cli.py catalog check pricing.json
    python scripts/offer_cli.py quote preview --package standard-business \\
        --option blog-module --extra-pages 2 --discount-percentage 10

``quote preview`` builds the offer with the same mutators an editing session
uses, so refused choices (an option the package does not allow, a discount
outside policy) are reported instead of silently priced.
"""

import argparse
import json
import logging
import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from offer_config import export_catalog_json, get_active_catalog, import_catalog_json
from offer_engines.pricing import PricingCalculator
from offer_engines.payment_schedule import split_total
from offer_kernel.domain.configuration import DiscountType, OfferConfiguration
from offer_kernel.domain.mutators import OfferBuilder
from offer_kernel.exceptions import CatalogImportError
from offer_kernel.logging_config import configure_logging


def cmd_catalog_export(args: argparse.Namespace) -> int:
    pack = get_active_catalog(args.config_dir, args.set_name)
    print(export_catalog_json(pack.catalog))
    return 0


def cmd_catalog_check(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1
    try:
        catalog = import_catalog_json(path.read_text(encoding="utf-8"))
    except CatalogImportError as exc:
        print(f"INVALID: {exc}", file=sys.stderr)
        return 1
    print(f"OK: {catalog!r}")
    return 0


def cmd_quote_preview(args: argparse.Namespace) -> int:
    pack = get_active_catalog(args.config_dir, args.set_name)
    builder = OfferBuilder(pack.catalog, pack.policy)
    problems: list[str] = []

    def step(config, result, problem):
        if result is config:
            problems.append(problem)
        return result

    config = OfferConfiguration.empty()
    package = pack.catalog.get_package(args.package)
    if package is None:
        print(f"Error: unknown package: {args.package}", file=sys.stderr)
        return 1
    config = builder.set_package(config, package)

    for option_id in args.option:
        option = pack.catalog.get_option(option_id)
        if option is None:
            problems.append(f"unknown option {option_id}")
            continue
        config = step(config, builder.toggle_option(config, option), f"option {option_id} refused")
    for option_id, amount in args.custom_price:
        config = step(
            config,
            builder.set_custom_price(config, option_id, amount),
            f"custom price for {option_id} refused",
        )
    if args.extra_pages:
        config = step(config, builder.set_extra_pages(config, args.extra_pages), "extra pages refused")
    if args.content_pages:
        config = step(
            config, builder.set_content_pages(config, args.content_pages), "content pages refused"
        )
    if args.maintenance:
        option = pack.catalog.get_option(args.maintenance)
        if option is None:
            problems.append(f"unknown maintenance plan {args.maintenance}")
        else:
            config = step(config, builder.set_maintenance(config, option), "maintenance refused")
    if args.discount_percentage is not None:
        config = step(
            config,
            builder.set_discount(config, DiscountType.PERCENTAGE, args.discount_percentage),
            f"discount {args.discount_percentage}% refused",
        )
    elif args.discount_fixed is not None:
        config = step(
            config,
            builder.set_discount(config, DiscountType.FIXED, args.discount_fixed),
            "fixed discount refused",
        )
    if args.schedule:
        config = step(
            config, builder.set_payment_schedule(config, args.schedule), "schedule refused"
        )

    breakdown = PricingCalculator(pack.policy).calculate(config)
    output = breakdown.to_dict()
    output["installments"] = [
        str(i.amount.amount) for i in split_total(breakdown.total, config.payment_schedule)
    ]
    output["problems"] = problems
    print(json.dumps(output, indent=2))
    return 1 if problems else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Offer catalog tools and quote preview.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python3 scripts/offer_cli.py catalog export\n"
            "  python3 scripts/offer_cli.py catalog check pricing.json\n"
            "  python3 scripts/offer_cli.py quote preview --package mini-website "
            "--option seo-package\n"
        ),
    )
    parser.add_argument(
        "--config-dir", type=Path, default=None,
        help="Catalog sets directory (default: offer_config/sets)",
    )
    parser.add_argument(
        "--set-name", type=str, default="default",
        help="Catalog set name (default: default)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Emit structured logs on stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    catalog = sub.add_parser("catalog", help="Catalog export and validation")
    catalog_sub = catalog.add_subparsers(dest="catalog_command", required=True)
    export = catalog_sub.add_parser("export", help="Print the active catalog as JSON")
    export.set_defaults(func=cmd_catalog_export)
    check = catalog_sub.add_parser("check", help="Validate a catalog JSON file")
    check.add_argument("file", type=str)
    check.set_defaults(func=cmd_catalog_check)

    quote = sub.add_parser("quote", help="Quote tools")
    quote_sub = quote.add_subparsers(dest="quote_command", required=True)
    preview = quote_sub.add_parser("preview", help="Price an offer and print the breakdown")
    preview.add_argument("--package", required=True, help="Package id")
    preview.add_argument("--option", action="append", default=[], help="Option id (repeatable)")
    preview.add_argument(
        "--custom-price", nargs=2, action="append", default=[],
        metavar=("OPTION_ID", "AMOUNT"), help="Negotiated price for an option",
    )
    preview.add_argument("--extra-pages", type=int, default=0)
    preview.add_argument("--content-pages", type=int, default=0)
    preview.add_argument("--maintenance", type=str, default=None, help="Maintenance option id")
    discount = preview.add_mutually_exclusive_group()
    discount.add_argument("--discount-percentage", type=Decimal, default=None)
    discount.add_argument("--discount-fixed", type=Decimal, default=None)
    preview.add_argument(
        "--schedule", type=str, default=None, help="once, split_2x25 or split_3x33",
    )
    preview.set_defaults(func=cmd_quote_preview)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
