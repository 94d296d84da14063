"""
Subscription Quotation Calculator - Pricing Engine
Pure functions turning (product, quantity, duration, discount, currency)
into an itemized QuoteLineItem.

PRICING FLOW:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
1. Monthly price = unit price * quantity * duration multiplier
2. Contract total (subtotal) = monthly price * months
3. Quantity discount from the seat-count tier table
4. Commercial discount compounds on top of it (A + B - A*B/100)
5. Total in USD = subtotal - discount
6. USD mode: total is final. BRL mode: USD total is converted and grossed
   up with import taxes, commercialization taxes and target margin

All amounts are Decimal, rounded to 4 places (ROUND_HALF_UP).
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from pricing_catalog import QUANTITY_DISCOUNTS, CURRENCY_SETTINGS, validate_tax_config
from pricing_models import (
    CatalogEntry,
    ContractDuration,
    QuantityDiscountTier,
    TaxConfig,
    ResaleBreakdown,
    QuoteLineItem,
    CurrencyMode,
    InvalidQuantityError,
    InvalidDiscountError,
    InvalidExchangeRateError,
)


HUNDRED = Decimal("100")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def round_decimal(value: Decimal, decimal_places: int = 4) -> Decimal:
    """Round decimal to specified places using ROUND_HALF_UP."""
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def format_currency(value: Decimal, currency: CurrencyMode | str = CurrencyMode.USD) -> str:
    """
    Format an amount for display with 2 decimals.

    USD: $1,368.00    BRL: R$ 1.368,00
    """
    settings = CURRENCY_SETTINGS[CurrencyMode(currency)]
    amount = round_decimal(Decimal(value), 2)
    sign = "-" if amount < 0 else ""
    # Format with placeholders first so separators can be swapped
    text = f"{abs(amount):,.2f}"
    text = text.replace(",", "\x00").replace(".", settings["decimal"]).replace("\x00", settings["thousands"])
    return f"{sign}{settings['symbol']}{text}"


# ============================================================================
# DISCOUNTS
# ============================================================================

def get_quantity_discount(
    quantity: int,
    tiers: Optional[List[QuantityDiscountTier]] = None
) -> Decimal:
    """
    Discount % for a seat count.

    Returns the discount of the first tier whose [min, max] contains
    quantity. The default tier table covers [1, inf).

    Raises:
        InvalidQuantityError: quantity < 1 or no tier matches
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")

    for tier in (QUANTITY_DISCOUNTS if tiers is None else tiers):
        if tier.contains(quantity):
            return tier.discount

    raise InvalidQuantityError(f"No quantity discount tier covers {quantity}")


def combine_discounts(first: Decimal, second: Decimal) -> Decimal:
    """
    Compound two discount percentages.

    Applying A% then B% equals one discount of A + B - A*B/100,
    e.g. 50% and 50% give 75%, never 100%.
    """
    first = Decimal(first)
    second = Decimal(second)
    return first + second - (first * second / HUNDRED)


# ============================================================================
# RESALE (LOCAL CURRENCY) PRICING
# ============================================================================

def calculate_resale_price(
    origin_amount_usd: Decimal,
    exchange_rate: Decimal,
    tax_config: TaxConfig
) -> ResaleBreakdown:
    """
    Convert a USD cost into a local-currency selling price.

    Steps:
    1. cost_local = origin * rate
    2. Import taxes = cost_local * (income + financial) / 100, plus fixed fee * rate
    3. Selling price grossed up so commercialization taxes and margin,
       both stated as % of the selling price, are covered:
       selling = cost_with_import_taxes / (1 - (commercialization + margin) / 100)
    4. margin_amount = selling - cost_with_import_taxes - commercialization_amount

    Args:
        origin_amount_usd: Discounted total in USD
        exchange_rate: USD -> local rate (> 0)
        tax_config: Import/commercialization rates and target margin

    Returns:
        ResaleBreakdown where selling_price == cost_with_import_taxes
        + commercialization_amount + margin_amount

    Raises:
        InvalidExchangeRateError: exchange_rate <= 0
        InvalidTaxConfigurationError: commercialization + margin >= 100%
    """
    exchange_rate = Decimal(exchange_rate)
    if not exchange_rate.is_finite() or exchange_rate <= 0:
        raise InvalidExchangeRateError(f"Exchange rate must be positive, got {exchange_rate}")
    validate_tax_config(tax_config)

    origin_amount_usd = Decimal(origin_amount_usd)

    # Conversion
    cost_local = round_decimal(origin_amount_usd * exchange_rate)

    # Import taxes
    income_tax_amount = round_decimal(cost_local * tax_config.income_tax_rate / HUNDRED)
    financial_tax_amount = round_decimal(cost_local * tax_config.financial_tax_rate / HUNDRED)
    fixed_fee_local = round_decimal(tax_config.fixed_fee_usd * exchange_rate)
    import_tax_total = income_tax_amount + financial_tax_amount + fixed_fee_local
    cost_with_import_taxes = cost_local + import_tax_total

    # Gross-up
    commercialization_rate = tax_config.commercialization_rate
    denominator = Decimal("1") - (commercialization_rate + tax_config.target_margin) / HUNDRED
    selling_price = round_decimal(cost_with_import_taxes / denominator)

    commercialization_amount = round_decimal(selling_price * commercialization_rate / HUNDRED)
    margin_amount = selling_price - cost_with_import_taxes - commercialization_amount

    if selling_price > 0:
        margin_percentage = round_decimal(margin_amount / selling_price * HUNDRED)
    else:
        margin_percentage = Decimal("0")

    return ResaleBreakdown(
        origin_amount_usd=origin_amount_usd,
        exchange_rate=exchange_rate,
        cost_local=cost_local,
        income_tax_amount=income_tax_amount,
        financial_tax_amount=financial_tax_amount,
        fixed_fee_local=fixed_fee_local,
        import_tax_total=import_tax_total,
        cost_with_import_taxes=cost_with_import_taxes,
        commercialization_rate=commercialization_rate,
        commercialization_amount=commercialization_amount,
        selling_price=selling_price,
        margin_amount=margin_amount,
        margin_percentage=margin_percentage,
        target_margin=tax_config.target_margin,
    )


# ============================================================================
# LINE ITEM PRICING
# ============================================================================

def price_item(
    item_id: int,
    entry: CatalogEntry,
    contract: ContractDuration,
    quantity: int,
    commercial_discount: Decimal = Decimal("0"),
    currency: CurrencyMode = CurrencyMode.USD,
    exchange_rate: Optional[Decimal] = None,
    tax_config: Optional[TaxConfig] = None
) -> QuoteLineItem:
    """
    Price one license or add-on selection.

    Args:
        item_id: Fresh identifier allocated by the quote store
        entry: Catalog license or add-on
        contract: Contract duration (embedded by value in the result)
        quantity: Seats (>= 1)
        commercial_discount: Salesperson discount % (0-100)
        currency: USD (origin) or BRL (resale)
        exchange_rate: Required for BRL
        tax_config: Required for BRL

    Returns:
        QuoteLineItem with the full price breakdown

    Raises:
        InvalidQuantityError, InvalidDiscountError, InvalidExchangeRateError,
        InvalidTaxConfigurationError
    """
    currency = CurrencyMode(currency)
    commercial_discount = Decimal(commercial_discount)
    if not commercial_discount.is_finite() or not (Decimal("0") <= commercial_discount <= HUNDRED):
        raise InvalidDiscountError(f"Discount must be between 0 and 100%, got {commercial_discount}")

    quantity_discount = get_quantity_discount(quantity)
    months = Decimal(contract.months)

    monthly_price = entry.base_price * Decimal(quantity) * contract.multiplier
    base_total = round_decimal(monthly_price * months)
    subtotal = base_total

    total_discount_rate = combine_discounts(quantity_discount, commercial_discount)
    discount_amount = round_decimal(subtotal * total_discount_rate / HUNDRED)
    total_origin_usd = subtotal - discount_amount

    resale = None
    if currency == CurrencyMode.USD:
        total = total_origin_usd
    else:
        if exchange_rate is None or tax_config is None:
            raise InvalidExchangeRateError("Resale pricing needs an exchange rate and tax configuration")
        resale = calculate_resale_price(total_origin_usd, exchange_rate, tax_config)
        total = resale.selling_price

    monthly_average = round_decimal(total / months)
    per_user_per_month = round_decimal(monthly_average / Decimal(quantity))

    return QuoteLineItem(
        id=item_id,
        product_type=entry.product_type,
        product_id=entry.id,
        name=entry.name,
        description=entry.description,
        contract=contract,
        quantity=quantity,
        base_total=base_total,
        subtotal=subtotal,
        quantity_discount=quantity_discount,
        commercial_discount=commercial_discount,
        total_discount_rate=total_discount_rate,
        discount_amount=discount_amount,
        total_origin_usd=total_origin_usd,
        total=total,
        monthly_average=monthly_average,
        per_user_per_month=per_user_per_month,
        resale=resale,
        currency=currency,
    )
