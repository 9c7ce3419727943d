"""
Tests for OfferBuilder, the only way an OfferConfiguration changes.

Mutators never raise: a refused mutation returns the very same instance.
"""

from decimal import Decimal

import pytest

from offer_kernel.domain.catalog import Package, PackageCategory
from offer_kernel.domain.configuration import (
    ConfigurationPatch,
    CustomLineItem,
    Discount,
    DiscountType,
    PaymentSchedule,
)
from offer_kernel.domain.mutators import OfferBuilder
from offer_kernel.domain.policy import PricingPolicy, QuantityCounter
from offer_kernel.domain.values import Currency, Money


def eur(amount) -> Money:
    return Money.of(str(amount), "EUR")


@pytest.fixture
def starter_config(builder, catalog, empty):
    return builder.set_package(empty, catalog.get_package("starter"))


class TestBuilderConstruction:
    def test_currency_mismatch_rejected(self, catalog):
        policy = PricingPolicy(
            currency=Currency("USD"),
            tax_rate=Decimal("0.21"),
            allowed_discount_percentages=frozenset(),
            quantity_links=(),
        )
        with pytest.raises(ValueError, match="does not match"):
            OfferBuilder(catalog, policy)


class TestSetPackage:
    """Tests for package selection and option pruning."""

    def test_select_package(self, builder, catalog, empty):
        config = builder.set_package(empty, catalog.get_package("starter"))
        assert config.selected_package.id == "starter"
        assert config.is_valid
        assert not empty.is_valid

    def test_unknown_package_refused(self, builder, catalog, empty):
        ghost = Package("ghost", "Ghost", eur(1), PackageCategory.WEBSITE)
        assert builder.set_package(empty, ghost) is empty

    def test_package_change_drops_ineligible_options(self, builder, catalog, starter_config):
        config = builder.toggle_option(starter_config, catalog.get_option("blog"))
        config = builder.toggle_option(config, catalog.get_option("design-pack"))
        config = builder.set_package(config, catalog.get_package("shop"))
        assert config.option_ids == ("design-pack",)

    def test_package_change_drops_price_and_note_of_dropped_options(
        self, builder, catalog, starter_config
    ):
        config = builder.toggle_option(starter_config, catalog.get_option("blog"))
        config = builder.set_option_note(config, "blog", "weekly posts")
        config = builder.set_package(config, catalog.get_package("shop"))
        assert "blog" not in config.option_notes

    def test_package_change_resets_ineligible_quantity(self, builder, catalog, starter_config):
        config = builder.set_extra_pages(starter_config, 3)
        config = builder.set_package(config, catalog.get_package("premium"))
        assert config.extra_pages == 0
        assert not config.has_option("extra-pages")

    def test_package_change_keeps_eligible_quantity(self, builder, catalog, starter_config):
        config = builder.set_extra_pages(starter_config, 3)
        config = builder.set_package(config, catalog.get_package("shop"))
        assert config.extra_pages == 3
        assert config.has_option("extra-pages")

    def test_clearing_package_drops_every_option(self, builder, catalog, starter_config):
        config = builder.toggle_option(starter_config, catalog.get_option("design-pack"))
        config = builder.set_content_pages(config, 2)
        config = builder.set_package(config, None)
        assert config.selected_options == ()
        assert config.content_pages == 0

    def test_drop_is_logged(self, builder, catalog, starter_config, captured_logs):
        config = builder.toggle_option(starter_config, catalog.get_option("blog"))
        builder.set_package(config, catalog.get_package("shop"))
        records = [r for r in captured_logs() if r["message"] == "options_dropped_on_package_change"]
        assert records[0]["dropped_option_ids"] == ["blog"]


class TestToggleOption:
    """Tests for adding and removing add-ons."""

    def test_add_and_remove(self, builder, catalog, starter_config):
        option = catalog.get_option("design-pack")
        added = builder.toggle_option(starter_config, option)
        assert added.option_ids == ("design-pack",)
        removed = builder.toggle_option(added, option)
        assert removed.option_ids == ()

    def test_no_package_refused(self, builder, catalog, empty, captured_logs):
        assert builder.toggle_option(empty, catalog.get_option("design-pack")) is empty
        refused = [r for r in captured_logs() if r["message"] == "mutation_refused"]
        assert refused[0]["reason"] == "not_eligible"

    def test_ineligible_refused(self, builder, catalog, starter_config):
        assert builder.toggle_option(starter_config, catalog.get_option("shop-sync")) is starter_config

    def test_maintenance_is_not_an_add_on(self, builder, catalog, starter_config):
        assert builder.toggle_option(starter_config, catalog.get_option("care-basic")) is starter_config

    def test_toggle_linked_option_sets_quantity_to_one(self, builder, catalog, starter_config):
        config = builder.toggle_option(starter_config, catalog.get_option("extra-pages"))
        assert config.extra_pages == 1

    def test_toggle_off_linked_option_resets_quantity(self, builder, catalog, starter_config):
        config = builder.set_extra_pages(starter_config, 4)
        config = builder.toggle_option(config, catalog.get_option("extra-pages"))
        assert config.extra_pages == 0
        assert not config.has_option("extra-pages")

    def test_toggle_off_keeps_custom_price_and_drops_note(self, builder, catalog, starter_config):
        option = catalog.get_option("integration")
        config = builder.toggle_option(starter_config, option)
        config = builder.set_custom_price(config, "integration", "800")
        config = builder.set_option_note(config, "integration", "Exact Online")
        config = builder.toggle_option(config, option)
        assert config.custom_price("integration") == eur(800)
        assert "integration" not in config.option_notes

    def test_previous_configuration_unchanged(self, builder, catalog, starter_config):
        builder.toggle_option(starter_config, catalog.get_option("design-pack"))
        assert starter_config.option_ids == ()


class TestCustomPrices:
    """Tests for negotiated prices and notes."""

    def test_set_custom_price_from_string(self, builder, starter_config):
        config = builder.set_custom_price(starter_config, "integration", "1250.50")
        assert config.custom_price("integration") == eur("1250.50")

    def test_negative_price_refused(self, builder, starter_config):
        assert builder.set_custom_price(starter_config, "integration", "-1") is starter_config

    def test_non_numeric_refused(self, builder, starter_config):
        assert builder.set_custom_price(starter_config, "integration", "lots") is starter_config

    def test_other_currency_refused(self, builder, starter_config):
        usd = Money.of("10", "USD")
        assert builder.set_custom_price(starter_config, "integration", usd) is starter_config

    def test_zero_price_allowed(self, builder, starter_config):
        config = builder.set_custom_price(starter_config, "integration", 0)
        assert config.custom_price("integration") == Money.zero("EUR")

    def test_empty_note_removes_note(self, builder, catalog, starter_config):
        config = builder.toggle_option(starter_config, catalog.get_option("integration"))
        config = builder.set_option_note(config, "integration", "call first")
        assert config.option_notes["integration"] == "call first"
        config = builder.set_option_note(config, "integration", "")
        assert "integration" not in config.option_notes

    def test_note_on_unselected_option_refused(self, builder, starter_config):
        assert builder.set_option_note(starter_config, "integration", "call first") is starter_config

    def test_price_rounded_to_cents(self, builder, starter_config):
        config = builder.set_custom_price(
            starter_config, "integration", Decimal("0.49999999999999999999")
        )
        assert config.custom_price("integration").amount == Decimal("0.50")

    def test_price_beyond_decimal_precision_refused(self, builder, starter_config):
        assert builder.set_custom_price(starter_config, "integration", "1e40") is starter_config

    def test_mappings_are_read_only(self, builder, starter_config):
        config = builder.set_custom_price(starter_config, "integration", "10")
        with pytest.raises(TypeError):
            config.custom_prices["integration"] = eur(1)


class TestQuantityLinkage:
    """A linked option is selected exactly when its counter is positive."""

    def test_zero_to_positive_selects_option(self, builder, starter_config):
        config = builder.set_extra_pages(starter_config, 2)
        assert config.extra_pages == 2
        assert config.has_option("extra-pages")

    def test_positive_to_zero_deselects_option(self, builder, starter_config):
        config = builder.set_content_pages(starter_config, 2)
        config = builder.set_content_pages(config, 0)
        assert config.content_pages == 0
        assert not config.has_option("content-creation")

    def test_negative_clamps_to_zero(self, builder, starter_config):
        config = builder.set_extra_pages(starter_config, 3)
        config = builder.set_extra_pages(config, -5)
        assert config.extra_pages == 0
        assert not config.has_option("extra-pages")

    def test_numeric_string_accepted(self, builder, starter_config):
        assert builder.set_extra_pages(starter_config, "4").extra_pages == 4

    def test_non_numeric_refused(self, builder, starter_config):
        assert builder.set_extra_pages(starter_config, "many") is starter_config

    def test_positive_without_package_refused(self, builder, empty):
        assert builder.set_extra_pages(empty, 2) is empty

    def test_positive_for_excluded_package_refused(self, builder, catalog, empty):
        config = builder.set_package(empty, catalog.get_package("premium"))
        assert builder.set_extra_pages(config, 2) is config

    def test_change_keeps_single_selection(self, builder, starter_config):
        config = builder.set_extra_pages(starter_config, 1)
        config = builder.set_extra_pages(config, 5)
        assert config.option_ids.count("extra-pages") == 1

    @pytest.mark.parametrize("qty", ["1e5000", 1001, "1001"])
    def test_above_max_quantity_refused(self, builder, starter_config, qty):
        assert builder.set_extra_pages(starter_config, qty) is starter_config

    def test_max_quantity_accepted(self, builder, calculator, starter_config):
        config = builder.set_extra_pages(starter_config, 1000)
        assert config.extra_pages == 1000
        assert calculator.calculate(config).total.is_positive

    def test_quantity_accessor(self, builder, starter_config):
        config = builder.set_quantity(starter_config, QuantityCounter.CONTENT_PAGES, 3)
        assert config.quantity(QuantityCounter.CONTENT_PAGES) == 3


class TestMaintenance:
    """Tests for the single maintenance slot."""

    def test_select_and_replace(self, builder, catalog, starter_config):
        config = builder.set_maintenance(starter_config, catalog.get_option("care-basic"))
        config = builder.set_maintenance(config, catalog.get_option("care-plus"))
        assert config.selected_maintenance.id == "care-plus"

    def test_clear(self, builder, catalog, starter_config):
        config = builder.set_maintenance(starter_config, catalog.get_option("care-basic"))
        assert builder.set_maintenance(config, None).selected_maintenance is None

    def test_non_maintenance_refused(self, builder, catalog, starter_config):
        assert builder.set_maintenance(starter_config, catalog.get_option("blog")) is starter_config

    def test_maintenance_allowed_without_package(self, builder, catalog, empty):
        config = builder.set_maintenance(empty, catalog.get_option("care-basic"))
        assert config.selected_maintenance.id == "care-basic"


class TestCustomLineItems:
    """Tests for ad hoc charges."""

    @pytest.fixture
    def builder(self, catalog, policy):
        ids = iter(f"item-{n}" for n in range(1, 100))
        return OfferBuilder(catalog, policy, id_factory=lambda: next(ids))

    def test_add(self, builder, starter_config):
        config = builder.add_custom_line_item(starter_config, "  Logo design ", "250")
        assert config.custom_line_items == (CustomLineItem("item-1", "Logo design", eur(250)),)

    def test_price_rounded_to_cents(self, builder, starter_config):
        config = builder.add_custom_line_item(starter_config, "Logo", "99.994")
        assert config.custom_line_items[0].price == eur("99.99")

    def test_blank_name_refused(self, builder, starter_config):
        assert builder.add_custom_line_item(starter_config, "   ", "250") is starter_config

    def test_non_positive_price_refused(self, builder, starter_config):
        assert builder.add_custom_line_item(starter_config, "Logo", "0") is starter_config
        assert builder.add_custom_line_item(starter_config, "Logo", "-5") is starter_config

    def test_update(self, builder, starter_config):
        config = builder.add_custom_line_item(starter_config, "Logo", "250")
        config = builder.update_custom_line_item(config, "item-1", "Logo + icons", "300")
        assert config.custom_line_items[0].name == "Logo + icons"
        assert config.custom_line_items[0].price == eur(300)

    def test_update_unknown_refused(self, builder, starter_config):
        assert builder.update_custom_line_item(starter_config, "nope", "X", "1") is starter_config

    def test_remove(self, builder, starter_config):
        config = builder.add_custom_line_item(starter_config, "Logo", "250")
        config = builder.add_custom_line_item(config, "Photos", "150")
        config = builder.remove_custom_line_item(config, "item-1")
        assert [item.id for item in config.custom_line_items] == ["item-2"]

    def test_remove_unknown_refused(self, builder, starter_config):
        assert builder.remove_custom_line_item(starter_config, "nope") is starter_config

    def test_default_ids_are_unique(self, catalog, policy, starter_config):
        plain = OfferBuilder(catalog, policy)
        config = plain.add_custom_line_item(starter_config, "A", "1")
        config = plain.add_custom_line_item(config, "B", "1")
        first, second = config.custom_line_items
        assert first.id != second.id


class TestDiscount:
    """Tests for discount selection against policy."""

    @pytest.mark.parametrize("pct", ["5", "10", "15"])
    def test_allowed_percentages(self, builder, starter_config, pct):
        config = builder.set_discount(starter_config, DiscountType.PERCENTAGE, pct)
        assert config.discount == Discount(DiscountType.PERCENTAGE, Decimal(pct))

    @pytest.mark.parametrize("pct", ["7", "20", "100"])
    def test_disallowed_percentage_refused(self, builder, starter_config, pct):
        assert builder.set_discount(starter_config, "percentage", pct) is starter_config

    def test_zero_percentage_clears(self, builder, starter_config):
        config = builder.set_discount(starter_config, "percentage", "10")
        assert builder.set_discount(config, "percentage", 0).discount == Discount.none()

    def test_fixed_amount_not_capped_here(self, builder, starter_config):
        config = builder.set_discount(starter_config, DiscountType.FIXED, "5000")
        assert config.discount.value == Decimal("5000")

    def test_fixed_amount_rounded_to_cents(self, builder, starter_config):
        config = builder.set_discount(starter_config, "fixed", "10.005")
        assert config.discount.value == Decimal("10.01")

    def test_negative_fixed_refused(self, builder, starter_config):
        assert builder.set_discount(starter_config, "fixed", "-10") is starter_config

    def test_unknown_type_refused(self, builder, starter_config):
        assert builder.set_discount(starter_config, "voucher", "10") is starter_config

    def test_none_clears(self, builder, starter_config):
        config = builder.set_discount(starter_config, "fixed", "100")
        assert not builder.set_discount(config, None).discount.is_active


class TestScheduleAndNarrative:
    """Tests for payment schedule, scope text and timeline."""

    def test_schedule(self, builder, starter_config):
        config = builder.set_payment_schedule(starter_config, "split_3x33")
        assert config.payment_schedule == PaymentSchedule.SPLIT_3X33

    def test_legacy_schedule_value(self, builder, starter_config):
        config = builder.set_payment_schedule(starter_config, "twice_25")
        assert config.payment_schedule == PaymentSchedule.SPLIT_2X25

    def test_unknown_schedule_refused(self, builder, starter_config):
        assert builder.set_payment_schedule(starter_config, "monthly") is starter_config

    def test_scope_and_timeline(self, builder, starter_config):
        config = builder.set_scope_description(starter_config, "Five pages")
        config = builder.set_timeline(config, "6 weeks")
        assert (config.scope_description, config.timeline) == ("Five pages", "6 weeks")


class TestPresetsAndReset:
    """Tests for bulk operations."""

    def test_apply_preset(self, builder, empty):
        config = builder.apply_preset(empty, "starter-design")
        assert config.selected_package.id == "starter"
        assert config.option_ids == ("design-pack", "blog")

    def test_preset_with_linked_option_sets_counter(self, builder, empty):
        config = builder.apply_preset(empty, "shop-launch")
        assert config.content_pages == 1

    def test_preset_keeps_existing_compatible_selection(self, builder, catalog, starter_config):
        config = builder.toggle_option(starter_config, catalog.get_option("blog"))
        config = builder.apply_preset(config, "starter-design")
        assert sorted(config.option_ids) == ["blog", "design-pack"]

    def test_unknown_preset_refused(self, builder, empty):
        assert builder.apply_preset(empty, "ghost") is empty

    def test_reset(self, builder, starter_config):
        config = builder.set_timeline(starter_config, "asap")
        reset = builder.reset(config)
        assert not reset.is_valid
        assert reset.timeline == ""
        assert reset.selected_options == ()


class TestLoadState:
    """Tests for applying restored patches."""

    def test_absent_fields_keep_current_values(self, builder, starter_config):
        config = builder.set_timeline(starter_config, "Q3")
        restored = builder.load_state(config, ConfigurationPatch(scope_description="new"))
        assert restored.timeline == "Q3"
        assert restored.scope_description == "new"

    def test_reconciles_ineligible_options(self, builder, catalog, empty):
        patch = ConfigurationPatch(
            selected_package=catalog.get_package("shop"),
            selected_options=(catalog.get_option("blog"), catalog.get_option("design-pack")),
        )
        assert builder.load_state(empty, patch).option_ids == ("design-pack",)

    def test_reconciles_quantity_without_option(self, builder, catalog, empty):
        patch = ConfigurationPatch(selected_package=catalog.get_package("starter"), extra_pages=3)
        config = builder.load_state(empty, patch)
        assert config.has_option("extra-pages")
        assert config.extra_pages == 3

    def test_reconciles_option_without_quantity(self, builder, catalog, empty):
        patch = ConfigurationPatch(
            selected_package=catalog.get_package("starter"),
            selected_options=(catalog.get_option("content-creation"),),
        )
        assert builder.load_state(empty, patch).content_pages == 1

    def test_quantity_dropped_when_option_not_allowed(self, builder, catalog, empty):
        patch = ConfigurationPatch(selected_package=catalog.get_package("premium"), extra_pages=3)
        config = builder.load_state(empty, patch)
        assert config.extra_pages == 0
        assert not config.has_option("extra-pages")

    def test_out_of_policy_discount_cleared(self, builder, catalog, empty):
        patch = ConfigurationPatch(
            selected_package=catalog.get_package("starter"),
            discount=Discount(DiscountType.PERCENTAGE, Decimal("12")),
        )
        assert builder.load_state(empty, patch).discount == Discount.none()

    def test_duplicate_options_collapsed(self, builder, catalog, empty):
        blog = catalog.get_option("blog")
        patch = ConfigurationPatch(
            selected_package=catalog.get_package("starter"), selected_options=(blog, blog)
        )
        assert builder.load_state(empty, patch).option_ids == ("blog",)
