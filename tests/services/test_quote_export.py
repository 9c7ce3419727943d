"""Tests for the customer-facing quote export document."""

import json
from decimal import Decimal

import pytest

from offer_kernel.exceptions import OfferIncompleteError
from offer_kernel.services.quote_export import (
    CustomerInfo,
    build_quote_export,
    dumps_quote_export,
    export_filename,
)


@pytest.fixture
def priced(builder, catalog, calculator, empty):
    config = builder.set_package(empty, catalog.get_package("starter"))
    config = builder.toggle_option(config, catalog.get_option("design-pack"))
    config = builder.toggle_option(config, catalog.get_option("integration"))
    config = builder.set_custom_price(config, "integration", "600")
    config = builder.set_option_note(config, "integration", "Exact Online")
    config = builder.set_extra_pages(config, 2)
    config = builder.set_maintenance(config, catalog.get_option("care-basic"))
    config = builder.set_discount(config, "percentage", "10")
    config = builder.set_payment_schedule(config, "split_3x33")
    return config, calculator.calculate(config)


class TestBuildQuoteExport:
    def test_refuses_incomplete_offer(self, calculator, empty, captured_logs):
        with pytest.raises(OfferIncompleteError) as exc_info:
            build_quote_export(empty, calculator.calculate(empty))
        assert exc_info.value.action == "export"
        assert any(r["message"] == "quote_export_refused" for r in captured_logs())

    def test_header(self, priced, clock):
        config, breakdown = priced
        export = build_quote_export(
            config, breakdown, CustomerInfo("Ada", "ada@example.com"), "Q-7", clock
        )
        assert export["quoteId"] == "Q-7"
        assert export["timestamp"] == "2024-01-01T12:00:00+00:00"
        assert export["customer"] == {"name": "Ada", "email": "ada@example.com", "phone": None}
        assert export["currency"] == "EUR"

    def test_package_and_options(self, priced, clock):
        config, breakdown = priced
        export = build_quote_export(config, breakdown, clock=clock)
        assert export["selectedPackage"] == {
            "id": "starter", "name": "Starter", "basePrice": "700.00",
        }
        options = {o["id"]: o for o in export["selectedOptions"]}
        assert options["design-pack"]["price"] == "400.00"
        assert options["integration"]["negotiated"] is True
        assert options["integration"]["note"] == "Exact Online"
        assert options["extra-pages"]["price"] == "250.00"
        assert options["extra-pages"]["quantity"] == 2

    def test_maintenance_monthly(self, priced, clock):
        config, breakdown = priced
        export = build_quote_export(config, breakdown, clock=clock)
        assert export["selectedMaintenance"]["monthlyPrice"] == "19.99"

    def test_installments_sum_to_total(self, priced, clock):
        config, breakdown = priced
        export = build_quote_export(config, breakdown, clock=clock)
        assert len(export["installments"]) == 3
        total = sum(Decimal(i["amount"]) for i in export["installments"])
        assert total == Decimal(export["pricing"]["total"])

    def test_pricing_matches_breakdown(self, priced, clock):
        config, breakdown = priced
        export = build_quote_export(config, breakdown, clock=clock)
        # (700 + 400 + 600 + 250) * 0.9 * 1.21
        assert export["pricing"]["total"] == "2123.55"
        assert export["pricing"]["discount_amount"] == "195.00"


class TestSerializationHelpers:
    def test_dumps_is_valid_json(self, priced, clock):
        config, breakdown = priced
        text = dumps_quote_export(build_quote_export(config, breakdown, clock=clock))
        assert json.loads(text)["paymentSchedule"] == "split_3x33"

    def test_filename_from_timestamp(self, priced, clock):
        config, breakdown = priced
        export = build_quote_export(config, breakdown, clock=clock)
        assert export_filename(export) == "offerte-2024-01-01.json"
