"""
Tests for Pricing Catalog

Tests cover:
- Lookups by identifier and unknown ids
- Catalog listing for the presentation layer
- Tax configuration loading (environment, overrides, rejection)
- Default currency and exchange rate from the environment
"""

import pytest
from decimal import Decimal

from pricing_catalog import (
    LICENSES,
    ADDONS,
    CONTRACT_DURATIONS,
    lookup_license,
    lookup_addon,
    lookup_duration,
    lookup_product,
    list_catalog,
    load_tax_config,
    validate_tax_config,
    get_default_currency,
    get_default_exchange_rate,
    DEFAULT_EXCHANGE_RATE,
)
from pricing_models import (
    TaxConfig,
    ProductType,
    CurrencyMode,
    UnknownIdentifierError,
    InvalidTaxConfigurationError,
)


class TestLookups:
    """Tests for catalog lookup functions"""

    def test_license_prices(self):
        assert lookup_license("unlimited").base_price == Decimal("8")
        assert lookup_license("business").base_price == Decimal("12")
        assert lookup_license("businessPlus").base_price == Decimal("19")
        assert lookup_license("enterprise").base_price == Decimal("35")

    def test_addon_prices(self):
        assert lookup_addon("brainAI").base_price == Decimal("5")
        assert lookup_addon("notekerAI").base_price == Decimal("3")

    def test_durations(self):
        one, two, three = (lookup_duration(d) for d in ("annual1", "annual2", "annual3"))
        assert (one.multiplier, one.months) == (Decimal("1.0"), 12)
        assert (two.multiplier, two.months) == (Decimal("0.90"), 24)
        assert (three.multiplier, three.months) == (Decimal("0.80"), 36)

    def test_unknown_license(self):
        with pytest.raises(UnknownIdentifierError) as exc_info:
            lookup_license("premium")
        assert exc_info.value.kind == "license"
        assert exc_info.value.identifier == "premium"
        assert "premium" in str(exc_info.value)

    def test_unknown_addon_and_duration(self):
        with pytest.raises(UnknownIdentifierError):
            lookup_addon("unlimited")
        with pytest.raises(UnknownIdentifierError):
            lookup_duration("annual5")

    def test_unknown_identifier_is_a_key_error(self):
        """Callers catching KeyError keep working"""
        with pytest.raises(KeyError):
            lookup_license("nope")

    def test_lookup_product_by_type(self):
        assert lookup_product(ProductType.LICENSE, "business").name == "Business"
        assert lookup_product("addon", "brainAI").name == "Brain AI"

    def test_lookup_product_does_not_cross_types(self):
        with pytest.raises(UnknownIdentifierError):
            lookup_product("addon", "business")

    def test_lookup_product_unknown_type(self):
        with pytest.raises(UnknownIdentifierError) as exc_info:
            lookup_product("service", "business")
        assert exc_info.value.kind == "product type"

    def test_entries_have_matching_ids_and_types(self):
        for key, entry in LICENSES.items():
            assert entry.id == key
            assert entry.product_type == ProductType.LICENSE
        for key, entry in ADDONS.items():
            assert entry.id == key
            assert entry.product_type == ProductType.ADDON
        for key, duration in CONTRACT_DURATIONS.items():
            assert duration.id == key


class TestListCatalog:
    """Tests for list_catalog"""

    def test_lists_all_options(self):
        catalog = list_catalog()
        assert [entry["id"] for entry in catalog["licenses"]] == [
            "unlimited", "business", "businessPlus", "enterprise"
        ]
        assert [entry["id"] for entry in catalog["addons"]] == ["brainAI", "notekerAI"]
        assert [d["id"] for d in catalog["durations"]] == ["annual1", "annual2", "annual3"]


class TestTaxConfig:
    """Tests for load_tax_config and validate_tax_config"""

    def test_defaults(self):
        config = load_tax_config()
        assert config == TaxConfig()
        assert config.commercialization_rate == Decimal("16.33")
        assert config.import_tax_rate == Decimal("15.38")
        assert config.target_margin == Decimal("20")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("QUOTE_TARGET_MARGIN", "25")
        monkeypatch.setenv("QUOTE_TAX_ISS", "2,5")
        monkeypatch.setenv("QUOTE_TAX_FIXED_FEE_USD", "12.50")

        config = load_tax_config()

        assert config.target_margin == Decimal("25")
        assert config.iss_rate == Decimal("2.5")
        assert config.fixed_fee_usd == Decimal("12.50")

    def test_invalid_environment_value_is_ignored(self, monkeypatch):
        monkeypatch.setenv("QUOTE_TAX_PIS", "abc")
        assert load_tax_config().pis_rate == TaxConfig().pis_rate

    def test_explicit_overrides_win(self, monkeypatch):
        monkeypatch.setenv("QUOTE_TARGET_MARGIN", "25")
        config = load_tax_config({"target_margin": Decimal("30")})
        assert config.target_margin == Decimal("30")

    def test_rejects_gross_up_overflow(self):
        """16.33% commercialization + 83.67% margin = 100%"""
        with pytest.raises(InvalidTaxConfigurationError):
            load_tax_config({"target_margin": Decimal("83.67")})

    def test_rejects_out_of_range_rate(self):
        with pytest.raises(InvalidTaxConfigurationError):
            load_tax_config({"irpj_rate": Decimal("-1")})

    def test_validate_returns_config(self):
        config = TaxConfig(target_margin=Decimal("10"))
        assert validate_tax_config(config) is config


class TestDefaults:
    """Tests for environment-driven currency defaults"""

    def test_default_currency(self, monkeypatch):
        monkeypatch.delenv("QUOTE_DEFAULT_CURRENCY", raising=False)
        assert get_default_currency() == CurrencyMode.USD

        monkeypatch.setenv("QUOTE_DEFAULT_CURRENCY", "brl")
        assert get_default_currency() == CurrencyMode.BRL

        monkeypatch.setenv("QUOTE_DEFAULT_CURRENCY", "EUR")
        assert get_default_currency() == CurrencyMode.USD

    def test_default_exchange_rate(self, monkeypatch):
        monkeypatch.delenv("QUOTE_DEFAULT_EXCHANGE_RATE", raising=False)
        assert get_default_exchange_rate() == DEFAULT_EXCHANGE_RATE

        monkeypatch.setenv("QUOTE_DEFAULT_EXCHANGE_RATE", "5.12")
        assert get_default_exchange_rate() == Decimal("5.12")

        monkeypatch.setenv("QUOTE_DEFAULT_EXCHANGE_RATE", "-1")
        assert get_default_exchange_rate() == DEFAULT_EXCHANGE_RATE

        monkeypatch.setenv("QUOTE_DEFAULT_EXCHANGE_RATE", "n/a")
        assert get_default_exchange_rate() == DEFAULT_EXCHANGE_RATE
