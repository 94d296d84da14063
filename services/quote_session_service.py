"""
Quote Session Service - calls made by the presentation layer

Each call runs to completion and returns a QuoteActionResult instead of
raising: pricing/validation errors become an error_code plus a message the
UI can show as-is. Rendering, dialogs and notifications stay in the UI.

Calls:
- add_to_quote(product_type, product_id, quantity, duration_id, discount)
- remove_from_quote(item_id)
- clear_quote(confirmed)
- change_currency(currency, exchange_rate)
- save_to_history(name) / load_from_history(id) / delete_from_history(id)
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pricing_engine import format_currency
from pricing_mapper import map_quote_request, validate_quote_request, safe_str
from pricing_models import (
    CurrencyMode,
    QuoteLineItem,
    SavedQuote,
    TaxConfig,
    UnknownIdentifierError,
    InvalidQuantityError,
    InvalidDiscountError,
    InvalidTaxConfigurationError,
    InvalidExchangeRateError,
)
from services.quote_history_service import (
    save_quote_to_history,
    load_quote_from_history,
    delete_quote_from_history,
    list_history,
    save_currency_preference,
    load_currency_preference,
)
from services.quote_store import QuoteStore
from services.storage import KeyValueStore

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

UNKNOWN_IDENTIFIER = "unknown_identifier"
INVALID_QUANTITY = "invalid_quantity"
INVALID_DISCOUNT = "invalid_discount"
INVALID_TAX_CONFIGURATION = "invalid_tax_configuration"
INVALID_EXCHANGE_RATE = "invalid_exchange_rate"
EMPTY_QUOTE = "empty_quote"
NOT_FOUND = "not_found"
CONFIRMATION_REQUIRED = "confirmation_required"
VALIDATION_FAILED = "validation_failed"

ERROR_CODES = {
    UnknownIdentifierError: UNKNOWN_IDENTIFIER,
    InvalidQuantityError: INVALID_QUANTITY,
    InvalidDiscountError: INVALID_DISCOUNT,
    InvalidTaxConfigurationError: INVALID_TAX_CONFIGURATION,
    InvalidExchangeRateError: INVALID_EXCHANGE_RATE,
}

PRICING_ERRORS = tuple(ERROR_CODES.keys())


@dataclass
class QuoteActionResult:
    """
    Result of a presentation-layer call.

    Attributes:
        success: Whether the action was applied
        message: User-facing message (success or failure)
        error_code: Machine-readable failure reason, None on success
        errors: All validation messages when several fields failed
        item: Line item added, if any
        items: Items after a bulk change (recompute/load)
        saved_quote: History entry created, if any
        removed: Whether something was actually removed
    """
    success: bool
    message: str = ""
    error_code: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    item: Optional[QuoteLineItem] = None
    items: List[QuoteLineItem] = field(default_factory=list)
    saved_quote: Optional[SavedQuote] = None
    removed: bool = False


def _failure(error: Exception) -> QuoteActionResult:
    code = next(
        (code for exc_type, code in ERROR_CODES.items() if isinstance(error, exc_type)),
        VALIDATION_FAILED,
    )
    return QuoteActionResult(success=False, message=str(error), error_code=code, errors=[str(error)])


class QuoteSession:
    """
    One user's quoting session: a QuoteStore plus history access.

    Args:
        storage: Backend shared by the store and the history (None = process-wide)
        currency / exchange_rate: Override the persisted preference
        tax_config: Resale taxes (defaults to load_tax_config())
        restore: Load the persisted quote and currency preference on start
    """

    def __init__(
        self,
        storage: Optional[KeyValueStore] = None,
        currency: Optional[CurrencyMode] = None,
        exchange_rate: Optional[Decimal] = None,
        tax_config: Optional[TaxConfig] = None,
        restore: bool = True
    ):
        self.storage = storage

        if restore and (currency is None or exchange_rate is None):
            saved_currency, saved_rate = load_currency_preference(storage=storage)
            currency = currency if currency is not None else saved_currency
            exchange_rate = exchange_rate if exchange_rate is not None else saved_rate

        self.store = QuoteStore(
            storage=storage,
            currency=currency,
            exchange_rate=exchange_rate,
            tax_config=tax_config,
        )
        if restore:
            self.store.restore()

    # =========================================================================
    # QUOTE ITEMS
    # =========================================================================

    def add_to_quote(
        self,
        product_type: Any,
        product_id: Any,
        quantity: Any,
        duration_id: Any,
        discount: Any = None
    ) -> QuoteActionResult:
        """Validate, price and append one selection"""
        errors = validate_quote_request(product_type, product_id, quantity, duration_id, discount)
        if errors:
            return QuoteActionResult(
                success=False,
                message=errors[0],
                error_code=VALIDATION_FAILED,
                errors=errors,
            )

        try:
            request = map_quote_request(product_type, product_id, quantity, duration_id, discount)
            item = self.store.price(request.entry, request.contract, request.quantity, request.discount)
        except PRICING_ERRORS as e:
            logger.warning(f"Could not price {product_type}:{product_id}: {e}")
            return _failure(e)

        self.store.add_item(item)
        return QuoteActionResult(success=True, message="Item adicionado à cotação!", item=item)

    def remove_from_quote(self, item_id: int) -> QuoteActionResult:
        """Remove an item; unknown ids are a successful no-op"""
        removed = self.store.remove_item(item_id)
        message = "Item removido da cotação" if removed else ""
        return QuoteActionResult(success=True, message=message, removed=removed)

    def clear_quote(self, confirmed: bool = False) -> QuoteActionResult:
        """Empty the quote once the user confirmed"""
        if self.store.is_empty():
            return QuoteActionResult(success=True)
        if not confirmed:
            return QuoteActionResult(
                success=False,
                message="Deseja realmente limpar toda a cotação?",
                error_code=CONFIRMATION_REQUIRED,
            )
        self.store.clear()
        return QuoteActionResult(success=True, message="Cotação limpa", removed=True)

    def change_currency(
        self,
        currency: Any,
        exchange_rate: Any = None
    ) -> QuoteActionResult:
        """Switch currency mode (and optionally the rate), repricing every item"""
        try:
            mode = CurrencyMode(safe_str(currency).upper())
        except ValueError:
            return QuoteActionResult(
                success=False,
                message=f"Moeda desconhecida: {currency}",
                error_code=UNKNOWN_IDENTIFIER,
            )

        try:
            items = self.store.recompute_all(mode, exchange_rate)
        except PRICING_ERRORS as e:
            logger.warning(f"Could not switch to {mode.value}: {e}")
            return _failure(e)

        save_currency_preference(self.store.currency, self.store.exchange_rate, storage=self.storage)
        return QuoteActionResult(
            success=True,
            message=f"Moeda alterada para {mode.value}",
            items=items,
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    def save_to_history(self, name: str) -> QuoteActionResult:
        """Snapshot the current quote under name"""
        saved = save_quote_to_history(name, self.store.snapshot(), storage=self.storage)
        if saved is None:
            return QuoteActionResult(
                success=False,
                message="Adicione itens à cotação antes de salvar",
                error_code=EMPTY_QUOTE,
            )
        total = format_currency(saved.total, self.store.currency)
        return QuoteActionResult(
            success=True,
            message=f"Cotação '{saved.name}' salva ({total})",
            saved_quote=saved,
        )

    def load_from_history(self, entry_id: int) -> QuoteActionResult:
        """
        Replace the working quote with a saved one.

        Items saved under another currency context are repriced under the
        session's current currency so totals stay comparable.
        """
        quote = load_quote_from_history(entry_id, storage=self.storage)
        if quote is None:
            return QuoteActionResult(
                success=False,
                message="Cotação não encontrada no histórico",
                error_code=NOT_FOUND,
            )

        self.store.replace(quote)
        if self.store.needs_recompute():
            try:
                self.store.recompute_all(self.store.currency)
            except PRICING_ERRORS as e:
                logger.warning(f"Loaded quote {entry_id} kept its original prices: {e}")

        return QuoteActionResult(
            success=True,
            message="Cotação carregada",
            items=self.store.items,
        )

    def delete_from_history(self, entry_id: int) -> QuoteActionResult:
        """Delete a saved quote; unknown ids are a successful no-op"""
        removed = delete_quote_from_history(entry_id, storage=self.storage)
        message = "Cotação removida do histórico" if removed else ""
        return QuoteActionResult(success=True, message=message, removed=removed)

    def history(self) -> List[SavedQuote]:
        """Saved quotes, most recent first"""
        return list_history(storage=self.storage)

    # =========================================================================
    # DISPLAY HELPERS
    # =========================================================================

    def summary(self) -> Dict[str, Any]:
        """Aggregate totals plus formatted strings"""
        summary = self.store.summary()
        summary["subtotal_display"] = format_currency(summary["subtotal"], CurrencyMode.USD)
        summary["total_display"] = format_currency(summary["total"], summary["currency"])
        return summary
