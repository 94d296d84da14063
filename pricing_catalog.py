"""
Subscription Quotation Calculator - Catalog
Static pricing reference data (licenses, add-ons, durations, discount tiers)

Prices are USD per user per month. The catalog is read-only at runtime;
callers must resolve user-supplied ids through the lookup functions, which
raise UnknownIdentifierError on a miss.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional
import logging

from dotenv import load_dotenv
from pydantic import ValidationError

from pricing_models import (
    CatalogEntry,
    ContractDuration,
    QuantityDiscountTier,
    TaxConfig,
    ProductType,
    CurrencyMode,
    UnknownIdentifierError,
    InvalidTaxConfigurationError,
)

load_dotenv()

logger = logging.getLogger(__name__)


# ============================================================================
# LICENSES AND ADD-ONS
# ============================================================================

LICENSES: Dict[str, CatalogEntry] = {
    "unlimited": CatalogEntry(
        id="unlimited",
        name="Unlimited",
        base_price=Decimal("8"),
        description="Equipes pequenas e médias",
        product_type=ProductType.LICENSE,
    ),
    "business": CatalogEntry(
        id="business",
        name="Business",
        base_price=Decimal("12"),
        description="Equipes em crescimento",
        product_type=ProductType.LICENSE,
    ),
    "businessPlus": CatalogEntry(
        id="businessPlus",
        name="Business Plus",
        base_price=Decimal("19"),
        description="Equipes avançadas com recursos premium",
        product_type=ProductType.LICENSE,
    ),
    "enterprise": CatalogEntry(
        id="enterprise",
        name="Enterprise",
        base_price=Decimal("35"),
        description="Grandes organizações",
        product_type=ProductType.LICENSE,
    ),
}

ADDONS: Dict[str, CatalogEntry] = {
    "brainAI": CatalogEntry(
        id="brainAI",
        name="Brain AI",
        base_price=Decimal("5"),
        description="Assistente inteligente com IA para automação",
        product_type=ProductType.ADDON,
    ),
    "notekerAI": CatalogEntry(
        id="notekerAI",
        name="Noteker AI",
        base_price=Decimal("3"),
        description="Transcrição e anotações automáticas",
        product_type=ProductType.ADDON,
    ),
}


# ============================================================================
# CONTRACT DURATIONS
# ============================================================================

# Multiplier applies to the monthly price; discount is the nominal % shown to users
CONTRACT_DURATIONS: Dict[str, ContractDuration] = {
    "annual1": ContractDuration(id="annual1", name="1 Ano", multiplier=Decimal("1.0"), months=12, discount=Decimal("0")),
    "annual2": ContractDuration(id="annual2", name="2 Anos", multiplier=Decimal("0.90"), months=24, discount=Decimal("10")),
    "annual3": ContractDuration(id="annual3", name="3 Anos", multiplier=Decimal("0.80"), months=36, discount=Decimal("20")),
}


# ============================================================================
# QUANTITY DISCOUNT TIERS
# ============================================================================

# Ordered, contiguous, covering [1, inf)
QUANTITY_DISCOUNTS: List[QuantityDiscountTier] = [
    QuantityDiscountTier(min_quantity=1, max_quantity=10, discount=Decimal("0")),
    QuantityDiscountTier(min_quantity=11, max_quantity=25, discount=Decimal("5")),
    QuantityDiscountTier(min_quantity=26, max_quantity=50, discount=Decimal("10")),
    QuantityDiscountTier(min_quantity=51, max_quantity=100, discount=Decimal("15")),
    QuantityDiscountTier(min_quantity=101, max_quantity=None, discount=Decimal("20")),
]


# ============================================================================
# CURRENCY SETTINGS
# ============================================================================

CURRENCY_SETTINGS = {
    CurrencyMode.USD: {"code": "USD", "symbol": "$", "thousands": ",", "decimal": "."},
    CurrencyMode.BRL: {"code": "BRL", "symbol": "R$ ", "thousands": ".", "decimal": ","},
}

DEFAULT_EXCHANGE_RATE = Decimal("5.50")


# ============================================================================
# LOOKUPS
# ============================================================================

def lookup_license(license_id: str) -> CatalogEntry:
    """Get license tier by id"""
    try:
        return LICENSES[license_id]
    except KeyError:
        raise UnknownIdentifierError("license", license_id) from None


def lookup_addon(addon_id: str) -> CatalogEntry:
    """Get add-on by id"""
    try:
        return ADDONS[addon_id]
    except KeyError:
        raise UnknownIdentifierError("addon", addon_id) from None


def lookup_duration(duration_id: str) -> ContractDuration:
    """Get contract duration by id"""
    try:
        return CONTRACT_DURATIONS[duration_id]
    except KeyError:
        raise UnknownIdentifierError("contract duration", duration_id) from None


def lookup_product(product_type: ProductType | str, product_id: str) -> CatalogEntry:
    """Resolve a license or add-on depending on product_type"""
    try:
        product_type = ProductType(product_type)
    except ValueError:
        raise UnknownIdentifierError("product type", str(product_type)) from None

    if product_type == ProductType.LICENSE:
        return lookup_license(product_id)
    return lookup_addon(product_id)


def list_catalog() -> Dict[str, List[Dict]]:
    """
    Selectable options for the presentation layer.

    Returns:
        Dict with 'licenses', 'addons' and 'durations' lists (plain dicts,
        Decimal values kept as Decimal)
    """
    return {
        "licenses": [entry.model_dump() for entry in LICENSES.values()],
        "addons": [entry.model_dump() for entry in ADDONS.values()],
        "durations": [duration.model_dump() for duration in CONTRACT_DURATIONS.values()],
    }


# ============================================================================
# CONFIGURATION (environment overrides)
# ============================================================================

# TaxConfig field -> environment variable
TAX_CONFIG_ENV = {
    "income_tax_rate": "QUOTE_TAX_INCOME",
    "financial_tax_rate": "QUOTE_TAX_FINANCIAL",
    "fixed_fee_usd": "QUOTE_TAX_FIXED_FEE_USD",
    "irpj_rate": "QUOTE_TAX_IRPJ",
    "csll_rate": "QUOTE_TAX_CSLL",
    "iss_rate": "QUOTE_TAX_ISS",
    "pis_rate": "QUOTE_TAX_PIS",
    "cofins_rate": "QUOTE_TAX_COFINS",
    "target_margin": "QUOTE_TARGET_MARGIN",
}


def _env_decimal(env_name: str) -> Optional[Decimal]:
    """Read a Decimal from the environment; None when unset or unparseable"""
    raw = os.getenv(env_name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = Decimal(raw.strip().replace(",", "."))
    except InvalidOperation:
        logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
        return None
    if not value.is_finite():
        logger.warning(f"Ignoring non-finite value for {env_name}: {raw!r}")
        return None
    return value


def validate_tax_config(config: TaxConfig) -> TaxConfig:
    """Reject configurations where the gross-up denominator is not positive"""
    if config.commercialization_rate + config.target_margin >= Decimal("100"):
        raise InvalidTaxConfigurationError(
            f"Commercialization rate ({config.commercialization_rate}%) plus target margin "
            f"({config.target_margin}%) must be below 100%"
        )
    return config


def load_tax_config(overrides: Optional[Dict[str, Decimal]] = None) -> TaxConfig:
    """
    Build TaxConfig from defaults, environment and explicit overrides.

    Priority: overrides > environment (QUOTE_TAX_*) > model defaults.
    Unparseable environment values are ignored.

    Raises:
        InvalidTaxConfigurationError: commercialization + margin >= 100%
    """
    values = {}
    for field_name, env_name in TAX_CONFIG_ENV.items():
        value = _env_decimal(env_name)
        if value is not None:
            values[field_name] = value

    if overrides:
        values.update(overrides)

    try:
        config = TaxConfig(**values)
    except ValidationError as e:
        raise InvalidTaxConfigurationError(f"Invalid tax configuration: {e}") from e
    return validate_tax_config(config)


def get_default_currency() -> CurrencyMode:
    """Currency mode from QUOTE_DEFAULT_CURRENCY (falls back to USD)"""
    raw = os.getenv("QUOTE_DEFAULT_CURRENCY", CurrencyMode.USD.value)
    try:
        return CurrencyMode(raw.upper())
    except ValueError:
        logger.warning(f"Unknown QUOTE_DEFAULT_CURRENCY {raw!r}, using USD")
        return CurrencyMode.USD


def get_default_exchange_rate() -> Decimal:
    """USD -> BRL rate from QUOTE_DEFAULT_EXCHANGE_RATE"""
    rate = _env_decimal("QUOTE_DEFAULT_EXCHANGE_RATE")
    if rate is None:
        return DEFAULT_EXCHANGE_RATE
    if rate <= 0:
        logger.warning(f"Non-positive default exchange rate {rate}, using {DEFAULT_EXCHANGE_RATE}")
        return DEFAULT_EXCHANGE_RATE
    return rate
