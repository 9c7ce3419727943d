"""
Tests for DraftCodec: snapshot shape, tolerant decode and restore.

Decoding never raises for snapshot content. Every ignored field is reported
as a DroppedField and the resulting patch only carries in-policy values.
"""

import json
from decimal import Decimal

import pytest

from offer_engines.pricing import PricingCalculator
from offer_kernel.domain.configuration import Discount, DiscountType, PaymentSchedule
from offer_kernel.domain.draft_codec import SCHEMA_VERSION, DroppedField
from offer_kernel.domain.mutators import OfferBuilder
from offer_kernel.domain.values import Money


def eur(amount) -> Money:
    return Money.of(str(amount), "EUR")


@pytest.fixture
def full_config(builder, catalog, empty):
    """Starter with one of everything."""
    builder = OfferBuilder(catalog, builder.policy, id_factory=lambda: "item-1")
    config = builder.set_package(empty, catalog.get_package("starter"))
    config = builder.toggle_option(config, catalog.get_option("design-pack"))
    config = builder.toggle_option(config, catalog.get_option("integration"))
    config = builder.set_custom_price(config, "integration", "1250.50")
    config = builder.set_option_note(config, "integration", "Exact Online sync")
    config = builder.set_extra_pages(config, 2)
    config = builder.set_content_pages(config, 3)
    config = builder.set_maintenance(config, catalog.get_option("care-basic"))
    config = builder.add_custom_line_item(config, "Logo", "250")
    config = builder.set_discount(config, DiscountType.PERCENTAGE, "10")
    config = builder.set_payment_schedule(config, PaymentSchedule.SPLIT_3X33)
    config = builder.set_scope_description(config, "Five pages")
    return builder.set_timeline(config, "6 weeks")


def _reasons(result) -> dict[str, str]:
    return {item.path: item.reason for item in result.dropped}


class TestSerialize:
    """Tests for the snapshot shape."""

    def test_keys(self, codec, full_config):
        snapshot = codec.serialize(full_config)
        assert set(snapshot) == {
            "schemaVersion", "currency", "selectedPackage", "selectedOptions",
            "customPrices", "optionNotes", "selectedMaintenance", "extraPages",
            "contentPages", "customLineItems", "discount", "paymentSchedule",
            "scopeDescription", "timeline",
        }
        assert snapshot["schemaVersion"] == SCHEMA_VERSION
        assert snapshot["currency"] == "EUR"

    def test_denormalized_package(self, codec, full_config):
        assert codec.serialize(full_config)["selectedPackage"] == {
            "id": "starter", "name": "Starter", "basePrice": 700,
        }

    def test_option_prices_resolved(self, codec, full_config):
        prices = {o["id"]: o["price"] for o in codec.serialize(full_config)["selectedOptions"]}
        assert prices == {
            "design-pack": 400,
            "integration": 1250.5,
            "extra-pages": 250,
            "content-creation": 375,
        }

    def test_maintenance_and_line_items(self, codec, full_config):
        snapshot = codec.serialize(full_config)
        assert snapshot["selectedMaintenance"]["price"] == 19.99
        assert snapshot["customLineItems"] == [{"id": "item-1", "name": "Logo", "price": 250}]

    def test_discount_and_schedule(self, codec, full_config):
        snapshot = codec.serialize(full_config)
        assert snapshot["discount"] == {"type": "percentage", "value": 10}
        assert snapshot["paymentSchedule"] == "split_3x33"

    def test_empty_configuration(self, codec, empty):
        snapshot = codec.serialize(empty)
        assert snapshot["selectedPackage"] is None
        assert snapshot["selectedOptions"] == []
        assert snapshot["discount"] == {"type": None, "value": 0}

    def test_json_safe(self, codec, full_config):
        assert json.loads(json.dumps(codec.serialize(full_config)))["extraPages"] == 2


class TestRoundTrip:
    """Tests for serialize -> deserialize -> load_state."""

    def test_restores_same_total(self, codec, builder, full_config, calculator):
        restored = codec.restore(codec.serialize(full_config), builder)
        assert calculator.calculate(restored).total == calculator.calculate(full_config).total

    def test_restores_every_field(self, codec, builder, full_config):
        restored = codec.restore(json.loads(json.dumps(codec.serialize(full_config))), builder)
        assert restored.selected_package.id == "starter"
        assert restored.option_ids == full_config.option_ids
        assert restored.custom_price("integration") == eur("1250.5")
        assert dict(restored.option_notes) == {"integration": "Exact Online sync"}
        assert restored.selected_maintenance.id == "care-basic"
        assert (restored.extra_pages, restored.content_pages) == (2, 3)
        assert restored.custom_line_items == full_config.custom_line_items
        assert restored.discount == Discount(DiscountType.PERCENTAGE, Decimal("10"))
        assert restored.payment_schedule == PaymentSchedule.SPLIT_3X33
        assert (restored.scope_description, restored.timeline) == ("Five pages", "6 weeks")

    def test_clean_decode(self, codec, full_config):
        assert codec.deserialize(codec.serialize(full_config)).is_clean

    def test_sub_cent_price_keeps_total(self, codec, builder, catalog, empty, calculator):
        config = builder.set_package(empty, catalog.get_package("starter"))
        config = builder.toggle_option(config, catalog.get_option("integration"))
        config = builder.set_custom_price(
            config, "integration", Decimal("0.49999999999999999999")
        )
        restored = codec.restore(json.loads(json.dumps(codec.serialize(config))), builder)
        assert calculator.calculate(restored).total == calculator.calculate(config).total
        assert codec.serialize(restored) == codec.serialize(config)

    def test_oversized_quantity_restores_priceable_config(self, codec, builder, calculator):
        restored = codec.restore(
            {"selectedPackage": {"id": "starter"}, "extraPages": "1e5000"}, builder
        )
        assert restored.extra_pages == 0
        assert calculator.calculate(restored).total.is_positive

    def test_restore_uses_live_catalog_objects(self, codec, builder, catalog, full_config):
        restored = codec.restore(codec.serialize(full_config), builder)
        assert restored.selected_package is catalog.get_package("starter")


class TestDecodeTolerance:
    """Tests for stale and malformed snapshots."""

    def test_not_an_object(self, codec):
        result = codec.deserialize(["nope"])
        assert result.dropped == (DroppedField("$", "not_an_object"),)
        assert result.patch.present_fields() == ()

    def test_missing_fields_default(self, codec):
        patch = codec.deserialize({}).patch
        assert patch.selected_package is None
        assert patch.selected_options == ()
        assert patch.extra_pages == 0
        assert patch.payment_schedule == PaymentSchedule.ONCE

    def test_unknown_package_dropped(self, codec):
        result = codec.deserialize({"selectedPackage": {"id": "retired"}})
        assert result.patch.selected_package is None
        assert _reasons(result) == {"selectedPackage": "unknown_package"}

    def test_package_as_plain_id(self, codec):
        assert codec.deserialize({"selectedPackage": "shop"}).patch.selected_package.id == "shop"

    def test_option_reasons(self, codec):
        result = codec.deserialize({
            "selectedPackage": {"id": "shop"},
            "selectedOptions": [
                {"id": "design-pack"},
                {"id": "retired"},
                {"id": "blog"},
                {"id": "care-basic"},
                "design-pack",
                42,
            ],
        })
        assert [o.id for o in result.patch.selected_options] == ["design-pack"]
        assert _reasons(result) == {
            "selectedOptions[1]": "unknown_option",
            "selectedOptions[2]": "not_eligible",
            "selectedOptions[3]": "not_an_add_on",
            "selectedOptions[4]": "duplicate",
            "selectedOptions[5]": "malformed",
        }

    def test_options_not_a_list(self, codec):
        result = codec.deserialize({"selectedOptions": {"id": "blog"}})
        assert _reasons(result) == {"selectedOptions": "not_a_list"}

    def test_custom_prices_validated(self, codec):
        result = codec.deserialize({
            "customPrices": {"integration": "900", "retired": 10, "design-pack": -1},
        })
        assert dict(result.patch.custom_prices) == {"integration": eur(900)}
        assert _reasons(result) == {
            "customPrices.retired": "unknown_option",
            "customPrices.design-pack": "invalid_amount",
        }

    def test_float_amounts_decoded_exactly(self, codec):
        patch = codec.deserialize({"customPrices": {"integration": 19.99}}).patch
        assert patch.custom_prices["integration"].amount == Decimal("19.99")

    def test_amounts_rounded_to_cents(self, codec):
        result = codec.deserialize({
            "customPrices": {"integration": 0.499999, "design-pack": "1e40"},
            "customLineItems": [{"id": "a", "name": "Logo", "price": "99.994"}],
            "discount": {"type": "fixed", "value": "10.005"},
        })
        assert result.patch.custom_prices["integration"].amount == Decimal("0.50")
        assert result.patch.custom_line_items[0].price == eur("99.99")
        assert result.patch.discount == Discount(DiscountType.FIXED, Decimal("10.01"))
        assert _reasons(result) == {"customPrices.design-pack": "invalid_amount"}

    def test_notes_only_for_selected_options(self, codec):
        result = codec.deserialize({
            "selectedPackage": {"id": "starter"},
            "selectedOptions": [{"id": "blog"}],
            "optionNotes": {"blog": "weekly", "design-pack": "orphan", "blog2": 5},
        })
        assert dict(result.patch.option_notes) == {"blog": "weekly"}
        assert _reasons(result) == {
            "optionNotes.design-pack": "option_not_selected",
            "optionNotes.blog2": "not_a_string",
        }

    def test_maintenance_must_be_maintenance(self, codec):
        result = codec.deserialize({"selectedMaintenance": {"id": "blog"}})
        assert result.patch.selected_maintenance is None
        assert _reasons(result) == {"selectedMaintenance": "not_a_maintenance_option"}

    @pytest.mark.parametrize(
        "raw, expected, reason",
        [(3, 3, None), ("4", 4, None), (2.5, 0, "not_an_integer"), (-2, 0, "negative"),
         ("many", 0, "not_an_integer"), (1000, 1000, None), (1001, 0, "too_large"),
         ("1e5000", 0, "too_large")],
    )
    def test_quantities(self, codec, raw, expected, reason):
        result = codec.deserialize({"extraPages": raw})
        assert result.patch.extra_pages == expected
        assert _reasons(result).get("extraPages") == reason

    def test_line_items_validated(self, codec):
        result = codec.deserialize({
            "customLineItems": [
                {"id": "a", "name": "Logo", "price": 250},
                {"id": "b", "name": " ", "price": 10},
                {"id": "c", "name": "Free", "price": 0},
                {"id": "a", "name": "Logo again", "price": 5},
                "junk",
                {"name": "No id", "price": 1},
            ],
        })
        items = result.patch.custom_line_items
        assert [item.name for item in items] == ["Logo", "No id"]
        assert items[1].id.startswith("custom-")
        assert _reasons(result) == {
            "customLineItems[1]": "blank_name",
            "customLineItems[2]": "invalid_price",
            "customLineItems[3]": "duplicate",
            "customLineItems[4]": "malformed",
        }

    @pytest.mark.parametrize(
        "raw, expected, reason",
        [
            ({"type": "percentage", "value": 15}, Discount(DiscountType.PERCENTAGE, Decimal("15")), None),
            ({"type": "percentage", "value": 12}, Discount.none(), "percentage_not_allowed"),
            ({"type": "fixed", "value": 5000}, Discount(DiscountType.FIXED, Decimal("5000")), None),
            ({"type": "fixed", "value": -1}, Discount.none(), "invalid_value"),
            ({"type": "voucher", "value": 10}, Discount.none(), "unknown_type"),
            ({"type": None, "value": 0}, Discount.none(), None),
        ],
    )
    def test_discount(self, codec, raw, expected, reason):
        result = codec.deserialize({"discount": raw})
        assert result.patch.discount == expected
        reasons = [item.reason for item in result.dropped]
        assert reasons == ([reason] if reason else [])

    def test_legacy_and_unknown_schedules(self, codec):
        assert codec.deserialize({"paymentSchedule": "thrice_33"}).patch.payment_schedule == (
            PaymentSchedule.SPLIT_3X33
        )
        result = codec.deserialize({"paymentSchedule": "weekly"})
        assert result.patch.payment_schedule == PaymentSchedule.ONCE
        assert _reasons(result) == {"paymentSchedule": "unknown_schedule"}

    def test_text_fields(self, codec):
        result = codec.deserialize({"scopeDescription": 12, "timeline": "Q3"})
        assert result.patch.scope_description == ""
        assert result.patch.timeline == "Q3"
        assert _reasons(result) == {"scopeDescription": "not_a_string"}

    def test_currency_mismatch_drops_amounts(self, codec):
        result = codec.deserialize({
            "currency": "USD",
            "customPrices": {"integration": 900},
            "customLineItems": [{"id": "a", "name": "Logo", "price": 250}],
            "discount": {"type": "fixed", "value": 100},
            "extraPages": 2,
        })
        assert dict(result.patch.custom_prices) == {}
        assert result.patch.custom_line_items == ()
        assert result.patch.discount == Discount.none()
        assert result.patch.extra_pages == 2
        assert {item.reason for item in result.dropped} == {"currency_mismatch"}

    def test_dropped_fields_logged(self, codec, captured_logs):
        codec.deserialize({"selectedPackage": {"id": "retired"}})
        records = [r for r in captured_logs() if r["message"] == "draft_field_dropped"]
        assert records == [
            {**records[0], "path": "selectedPackage", "reason": "unknown_package"}
        ]


class TestRestoreAgainstChangedCatalog:
    """A stored draft meets the current catalog."""

    def test_stale_option_dropped_but_rest_restored(self, codec, builder):
        snapshot = {
            "selectedPackage": {"id": "shop", "name": "Shop", "basePrice": 1800},
            "selectedOptions": [{"id": "blog"}, {"id": "shop-sync"}],
            "extraPages": 2,
        }
        config = codec.restore(snapshot, builder)
        assert config.option_ids == ("shop-sync", "extra-pages")
        assert config.extra_pages == 2

    def test_current_catalog_price_wins(self, codec, builder, policy):
        snapshot = {"selectedPackage": {"id": "starter", "basePrice": 1}}
        config = codec.restore(snapshot, builder)
        assert PricingCalculator(policy).calculate(config).package_amount == eur(700)
