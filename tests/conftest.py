"""
Shared pytest fixtures for quotation calculator tests.

Provides:
- In-memory storage and sessions bound to it
- Tax configurations with round numbers
- Line item factories
"""

import pytest
import os
import sys
from decimal import Decimal

# Set test environment before importing project modules
os.environ["TESTING"] = "true"
for _name in list(os.environ):
    if _name.startswith("QUOTE_"):
        del os.environ[_name]

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pricing_catalog import lookup_license, lookup_addon, lookup_duration
from pricing_engine import price_item
from pricing_models import TaxConfig, CurrencyMode
from services.storage import MemoryStore
from services.quote_store import QuoteStore
from services.quote_session_service import QuoteSession


# ============================================================================
# FACTORIES
# ============================================================================

def make_simple_tax_config(**overrides):
    """
    Tax config with round numbers: 10% income tax, USD 2 fixed fee,
    10% commercialization, 10% margin.
    """
    values = {
        "income_tax_rate": Decimal("10"),
        "financial_tax_rate": Decimal("0"),
        "fixed_fee_usd": Decimal("2"),
        "irpj_rate": Decimal("10"),
        "csll_rate": Decimal("0"),
        "iss_rate": Decimal("0"),
        "pis_rate": Decimal("0"),
        "cofins_rate": Decimal("0"),
        "target_margin": Decimal("10"),
    }
    values.update(overrides)
    return TaxConfig(**values)


def make_license_item(
    item_id=1,
    license_id="unlimited",
    quantity=15,
    duration_id="annual1",
    discount=Decimal("0"),
    currency=CurrencyMode.USD,
    exchange_rate=None,
    tax_config=None
):
    """Price a license line item."""
    return price_item(
        item_id=item_id,
        entry=lookup_license(license_id),
        contract=lookup_duration(duration_id),
        quantity=quantity,
        commercial_discount=discount,
        currency=currency,
        exchange_rate=exchange_rate,
        tax_config=tax_config,
    )


def make_addon_item(item_id=1, addon_id="brainAI", quantity=10, duration_id="annual1", discount=Decimal("0")):
    """Price an add-on line item in USD."""
    return price_item(
        item_id=item_id,
        entry=lookup_addon(addon_id),
        contract=lookup_duration(duration_id),
        quantity=quantity,
        commercial_discount=discount,
    )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def memory_storage():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def simple_tax_config():
    return make_simple_tax_config()


@pytest.fixture
def quote_store(memory_storage):
    """USD quote store writing to memory."""
    return QuoteStore(
        storage=memory_storage,
        currency=CurrencyMode.USD,
        exchange_rate=Decimal("5"),
        tax_config=make_simple_tax_config(),
    )


@pytest.fixture
def session(memory_storage):
    """USD session writing to memory."""
    return QuoteSession(
        storage=memory_storage,
        currency=CurrencyMode.USD,
        exchange_rate=Decimal("5"),
        tax_config=make_simple_tax_config(),
    )
