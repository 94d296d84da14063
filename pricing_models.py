"""
Subscription Quotation Calculator - Pricing Models
Pydantic models for catalog data, priced line items and saved quotes

All money values are Decimal. Percentages are stored as 0-100 values
(e.g. Decimal("5") = 5%), never as fractions.
"""

from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from enum import Enum


# ============================================================================
# ERRORS
# ============================================================================

class UnknownIdentifierError(KeyError):
    """Catalog lookup miss (license, add-on or contract duration id)"""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind} identifier: {identifier!r}")

    def __str__(self):
        return self.args[0]


class InvalidQuantityError(ValueError):
    """Quantity is not a positive integer"""


class InvalidDiscountError(ValueError):
    """Commercial discount outside 0-100%"""


class InvalidTaxConfigurationError(ValueError):
    """Commercialization rate + target margin >= 100% (gross-up undefined)"""


class InvalidExchangeRateError(ValueError):
    """Exchange rate must be strictly positive"""


# ============================================================================
# ENUMS - Dropdown/Select Values
# ============================================================================

class ProductType(str, Enum):
    """Kind of catalog product"""
    LICENSE = "license"
    ADDON = "addon"


class CurrencyMode(str, Enum):
    """Pricing currency mode"""
    USD = "USD"  # Origin currency, no resale taxes
    BRL = "BRL"  # Resale: USD cost grossed up with import taxes and margin


# ============================================================================
# CATALOG MODELS (read-only reference data)
# ============================================================================

class CatalogEntry(BaseModel):
    """License tier or add-on"""
    id: str = Field(..., min_length=1, description="Catalog identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Short description")
    base_price: Decimal = Field(..., gt=0, description="USD per user per month")
    product_type: ProductType = Field(..., description="license or addon")

    model_config = ConfigDict(frozen=True)


class ContractDuration(BaseModel):
    """Commitment length with price multiplier"""
    id: str = Field(..., min_length=1, description="Duration identifier")
    name: str = Field(..., description="Display name")
    multiplier: Decimal = Field(..., gt=0, description="Applied to the monthly price")
    months: int = Field(..., gt=0, description="Months in the contract period")
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Nominal discount % (display only)")

    model_config = ConfigDict(frozen=True)


class QuantityDiscountTier(BaseModel):
    """Seat-count discount range; max_quantity None = unbounded"""
    min_quantity: int = Field(..., ge=1)
    max_quantity: Optional[int] = Field(default=None, ge=1)
    discount: Decimal = Field(..., ge=0, le=100, description="Discount %")

    model_config = ConfigDict(frozen=True)

    @field_validator('max_quantity')
    @classmethod
    def validate_range(cls, v, info: ValidationInfo):
        """Upper bound cannot be below the lower bound"""
        min_quantity = info.data.get('min_quantity')
        if v is not None and min_quantity is not None and v < min_quantity:
            raise ValueError("max_quantity must be >= min_quantity")
        return v

    def contains(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


class TaxConfig(BaseModel):
    """Import and commercialization taxes for resale pricing (admin controlled)"""
    # Import side
    income_tax_rate: Decimal = Field(default=Decimal("15"), ge=0, le=100, description="Withholding income tax on import %")
    financial_tax_rate: Decimal = Field(default=Decimal("0.38"), ge=0, le=100, description="Financial transaction tax %")
    fixed_fee_usd: Decimal = Field(default=Decimal("0"), ge=0, description="Fixed fee per purchase (USD)")

    # Commercialization side (percent of selling price)
    irpj_rate: Decimal = Field(default=Decimal("4.8"), ge=0, le=100, description="Federal income tax %")
    csll_rate: Decimal = Field(default=Decimal("2.88"), ge=0, le=100, description="Social contribution on net profit %")
    iss_rate: Decimal = Field(default=Decimal("5"), ge=0, le=100, description="Service tax %")
    pis_rate: Decimal = Field(default=Decimal("0.65"), ge=0, le=100, description="PIS contribution %")
    cofins_rate: Decimal = Field(default=Decimal("3"), ge=0, le=100, description="COFINS contribution %")

    target_margin: Decimal = Field(default=Decimal("20"), ge=0, le=100, description="Target net margin on selling price %")

    model_config = ConfigDict(frozen=True)

    @property
    def import_tax_rate(self) -> Decimal:
        """Percentage taxes charged on the converted cost"""
        return self.income_tax_rate + self.financial_tax_rate

    @property
    def commercialization_rate(self) -> Decimal:
        """Sum of the five commercialization rates"""
        return self.irpj_rate + self.csll_rate + self.iss_rate + self.pis_rate + self.cofins_rate


# ============================================================================
# CALCULATION OUTPUT MODELS
# ============================================================================

class ResaleBreakdown(BaseModel):
    """Local-currency selling price built from a USD cost"""
    origin_amount_usd: Decimal = Field(..., description="Discounted total in USD")
    exchange_rate: Decimal = Field(..., gt=0, description="USD -> local rate used")
    cost_local: Decimal = Field(..., description="Cost converted before taxes")

    # Import taxes
    income_tax_amount: Decimal = Field(..., description="Income tax on import")
    financial_tax_amount: Decimal = Field(..., description="Financial transaction tax")
    fixed_fee_local: Decimal = Field(..., description="Fixed fee converted to local currency")
    import_tax_total: Decimal = Field(..., description="Sum of the three import components")
    cost_with_import_taxes: Decimal = Field(..., description="cost_local + import_tax_total")

    # Commercialization and margin
    commercialization_rate: Decimal = Field(..., description="Effective commercialization %")
    commercialization_amount: Decimal = Field(..., description="Taxes on the selling price")
    selling_price: Decimal = Field(..., description="Final local-currency price")
    margin_amount: Decimal = Field(..., description="Net margin left after costs and taxes")
    margin_percentage: Decimal = Field(..., description="margin_amount / selling_price * 100")
    target_margin: Decimal = Field(..., description="Configured target margin %")


class QuoteLineItem(BaseModel):
    """Priced result of one product selection"""
    id: int = Field(..., gt=0, description="Sequential identifier within the session")
    product_type: ProductType
    product_id: str = Field(..., description="Catalog identifier, kept for recalculation")
    name: str
    description: str = ""
    contract: ContractDuration
    quantity: int = Field(..., gt=0)

    base_total: Decimal = Field(..., description="Pre-discount contract total (USD)")
    subtotal: Decimal = Field(..., description="Same as base_total")
    quantity_discount: Decimal = Field(..., description="Automatic seat-count discount %")
    commercial_discount: Decimal = Field(..., ge=0, le=100, description="Salesperson discount %")
    total_discount_rate: Decimal = Field(..., description="Compounded discount %")
    discount_amount: Decimal = Field(..., description="subtotal * total_discount_rate / 100")
    total_origin_usd: Decimal = Field(..., description="Discounted total in USD")

    total: Decimal = Field(..., description="Final total in display currency")
    monthly_average: Decimal
    per_user_per_month: Decimal

    resale: Optional[ResaleBreakdown] = None
    currency: CurrencyMode = CurrencyMode.USD


class Quote(BaseModel):
    """Working quote snapshot: ordered items plus next id"""
    items: List[QuoteLineItem] = Field(default_factory=list)
    counter: int = Field(default=1, ge=1, description="Next item identifier")


class SavedQuote(BaseModel):
    """Named history entry (immutable after creation)"""
    id: int = Field(..., description="Creation time in epoch milliseconds")
    name: str
    items: List[QuoteLineItem] = Field(default_factory=list)
    total: Decimal
    timestamp: str = Field(..., description="ISO-8601 creation time")
    item_count: int = Field(..., ge=0, alias="itemCount")

    model_config = ConfigDict(frozen=True, populate_by_name=True)
