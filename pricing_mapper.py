"""
Quote Request Mapping Module

This module handles:
- Safe conversion of raw presentation input (form strings, numbers)
- Validation of an "add to quote" request, returning every error at once
- Mapping a validated request to catalog objects for the pricing engine

The pricing engine assumes pre-validated input; everything user-supplied
passes through here first.
"""

from typing import Any, List
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
import logging

from pricing_catalog import LICENSES, ADDONS, CONTRACT_DURATIONS, lookup_product, lookup_duration
from pricing_models import (
    CatalogEntry,
    ContractDuration,
    ProductType,
    InvalidQuantityError,
    InvalidDiscountError,
)

# Setup logger
logger = logging.getLogger(__name__)


# ============================================================================
# SAFE CONVERSION UTILITIES
# ============================================================================

def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert value to Decimal"""
    if value is None or value == "":
        return default
    try:
        result = Decimal(str(value).strip().replace(",", "."))
    except (ValueError, TypeError, InvalidOperation):
        return default
    if not result.is_finite():
        return default
    return result


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert value to string"""
    if isinstance(value, Enum):
        value = value.value
    if value is None or value == "":
        return default
    return str(value).strip()


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int (truncates like parseInt)"""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError, OverflowError):
        pass
    try:
        return int(Decimal(str(value).strip()))
    except (ValueError, TypeError, InvalidOperation, OverflowError):
        return default


# ============================================================================
# REQUEST MODEL
# ============================================================================

@dataclass
class QuoteItemRequest:
    """Validated 'add to quote' request resolved against the catalog"""
    entry: CatalogEntry
    contract: ContractDuration
    quantity: int
    discount: Decimal


# ============================================================================
# VALIDATION FUNCTION
# ============================================================================

def validate_quote_request(
    product_type: Any,
    product_id: Any,
    quantity: Any,
    duration_id: Any,
    discount: Any
) -> List[str]:
    """
    Validate an add-to-quote request before pricing.
    Returns list of all validation errors (empty list if valid).

    Business rules:
    - quantity is a positive integer
    - discount is between 0 and 100%
    - a product of the given type must be selected and exist
    - the contract duration must exist
    """
    errors = []

    if isinstance(quantity, bool) or safe_int(quantity) < 1:
        errors.append("Por favor, informe uma quantidade válida")

    discount_value = safe_decimal(discount, default=None)
    if discount not in (None, "") and discount_value is None:
        errors.append("O desconto deve ser um número")
    elif discount_value is not None and not (Decimal("0") <= discount_value <= Decimal("100")):
        errors.append("O desconto deve estar entre 0 e 100%")

    product_type = safe_str(product_type)
    product_id = safe_str(product_id)
    if product_type == ProductType.LICENSE.value:
        if not product_id:
            errors.append("Por favor, selecione um tipo de licença")
        elif product_id not in LICENSES:
            errors.append(f"Licença desconhecida: {product_id}")
    elif product_type == ProductType.ADDON.value:
        if not product_id:
            errors.append("Por favor, selecione um add-on")
        elif product_id not in ADDONS:
            errors.append(f"Add-on desconhecido: {product_id}")
    else:
        errors.append(f"Tipo de produto desconhecido: {product_type or '(vazio)'}")

    duration_id = safe_str(duration_id)
    if duration_id not in CONTRACT_DURATIONS:
        errors.append(f"Duração de contrato desconhecida: {duration_id or '(vazio)'}")

    return errors


# ============================================================================
# MAPPING FUNCTION
# ============================================================================

def map_quote_request(
    product_type: Any,
    product_id: Any,
    quantity: Any,
    duration_id: Any,
    discount: Any = None
) -> QuoteItemRequest:
    """
    Convert raw request values into catalog objects for the pricing engine.

    Raises:
        UnknownIdentifierError: product or duration id not in the catalog
        InvalidQuantityError: quantity < 1
        InvalidDiscountError: discount outside 0-100%
    """
    if isinstance(quantity, bool):
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")
    quantity_value = safe_int(quantity)
    if quantity_value < 1:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")

    discount_value = safe_decimal(discount, default=None)
    if discount_value is None:
        if discount not in (None, ""):
            raise InvalidDiscountError(f"Discount must be a number, got {discount!r}")
        discount_value = Decimal("0")
    if not (Decimal("0") <= discount_value <= Decimal("100")):
        raise InvalidDiscountError(f"Discount must be between 0 and 100%, got {discount_value}")

    entry = lookup_product(safe_str(product_type), safe_str(product_id))
    contract = lookup_duration(safe_str(duration_id))

    logger.debug(
        f"Mapped request {entry.product_type.value}:{entry.id} x{quantity_value} "
        f"{contract.id} discount={discount_value}"
    )
    return QuoteItemRequest(
        entry=entry,
        contract=contract,
        quantity=quantity_value,
        discount=discount_value,
    )
