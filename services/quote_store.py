"""
Quote Store - the working quote of one session

Holds the ordered line items, the next-id counter and the currency context
(mode, exchange rate, tax configuration) used to price new items. Every
mutation is written through to storage via quote_history_service.

Several stores can coexist (one per session); nothing here is global.
Reads and mutations share one re-entrant lock, so recompute_all never
interleaves with add_item/remove_item and readers never see a half-applied
change.
"""

import logging
import threading
from decimal import Decimal
from typing import Dict, List, Optional

from pricing_catalog import (
    lookup_product,
    load_tax_config,
    get_default_currency,
    get_default_exchange_rate,
)
from pricing_engine import price_item
from pricing_models import (
    CatalogEntry,
    ContractDuration,
    CurrencyMode,
    Quote,
    QuoteLineItem,
    TaxConfig,
    InvalidExchangeRateError,
)
from services.quote_history_service import (
    save_current_quote,
    load_current_quote,
    clear_current_quote,
)
from services.storage import KeyValueStore

logger = logging.getLogger(__name__)


def _check_exchange_rate(exchange_rate) -> Decimal:
    try:
        rate = Decimal(str(exchange_rate).strip())
    except (ArithmeticError, TypeError, ValueError):
        raise InvalidExchangeRateError(f"Exchange rate must be a number, got {exchange_rate!r}") from None
    if not rate.is_finite() or rate <= 0:
        raise InvalidExchangeRateError(f"Exchange rate must be positive, got {exchange_rate!r}")
    return rate


class QuoteStore:
    """
    Ordered collection of priced items for the current quote.

    Attributes:
        currency: Mode used for new items and recomputation
        exchange_rate: USD -> BRL rate used in resale mode
        tax_config: Resale taxes and margin
        storage: Backend for autosave (None = process-wide store)
        autosave: Write through on every mutation
    """

    def __init__(
        self,
        storage: Optional[KeyValueStore] = None,
        currency: Optional[CurrencyMode] = None,
        exchange_rate: Optional[Decimal] = None,
        tax_config: Optional[TaxConfig] = None,
        autosave: bool = True
    ):
        self.storage = storage
        self.currency = CurrencyMode(currency) if currency is not None else get_default_currency()
        self.exchange_rate = (
            _check_exchange_rate(exchange_rate) if exchange_rate is not None else get_default_exchange_rate()
        )
        self.tax_config = tax_config if tax_config is not None else load_tax_config()
        self.autosave = autosave

        self._items: List[QuoteLineItem] = []
        self._counter = 1
        self._lock = threading.RLock()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def items(self) -> List[QuoteLineItem]:
        """Copy of the item list in insertion order"""
        with self._lock:
            return list(self._items)

    @property
    def counter(self) -> int:
        """Next identifier to be allocated"""
        with self._lock:
            return self._counter

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def get_item(self, item_id: int) -> Optional[QuoteLineItem]:
        with self._lock:
            for item in self._items:
                if item.id == item_id:
                    return item
        return None

    def _persist(self) -> None:
        if self.autosave:
            save_current_quote(self._snapshot_unlocked(), storage=self.storage)

    # =========================================================================
    # PRICING
    # =========================================================================

    def price(
        self,
        entry: CatalogEntry,
        contract: ContractDuration,
        quantity: int,
        discount: Decimal = Decimal("0")
    ) -> QuoteLineItem:
        """
        Price a selection under the store's currency context.

        The returned item has a fresh id but is not added yet.
        """
        with self._lock:
            item = price_item(
                item_id=self._counter,
                entry=entry,
                contract=contract,
                quantity=quantity,
                commercial_discount=discount,
                currency=self.currency,
                exchange_rate=self.exchange_rate,
                tax_config=self.tax_config,
            )
            # Only consume the id once pricing succeeded
            self._counter += 1
            return item

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_item(self, item: QuoteLineItem) -> None:
        """Append a priced item and autosave"""
        with self._lock:
            self._items.append(item)
            if item.id >= self._counter:
                self._counter = item.id + 1
            self._persist()
        logger.info(f"Added {item.product_type.value} '{item.name}' x{item.quantity} (id={item.id})")

    def remove_item(self, item_id: int) -> bool:
        """
        Remove the item with item_id and autosave.

        Returns:
            True if removed; False (no-op) when the id is absent
        """
        with self._lock:
            remaining = [item for item in self._items if item.id != item_id]
            removed = len(remaining) != len(self._items)
            self._items = remaining
            self._persist()
        if removed:
            logger.info(f"Removed item {item_id}")
        return removed

    def clear(self) -> None:
        """Empty the quote and delete the persisted snapshot (confirmation is the caller's job)"""
        with self._lock:
            self._items = []
            if self.autosave:
                clear_current_quote(storage=self.storage)
        logger.info("Quote cleared")

    def recompute_all(
        self,
        currency: CurrencyMode,
        exchange_rate: Optional[Decimal] = None,
        tax_config: Optional[TaxConfig] = None
    ) -> List[QuoteLineItem]:
        """
        Reprice every item under a new currency context.

        Each item keeps its position and id; product is resolved from its
        stored catalog id, the contract is reused by value. All items are
        repriced before anything is replaced, so a failure leaves the store
        (and its currency context) unchanged.

        Args:
            currency: New currency mode
            exchange_rate: New rate (keeps the current one when None)
            tax_config: New tax configuration (keeps the current one when None)

        Raises:
            UnknownIdentifierError: an item's product left the catalog
            InvalidExchangeRateError, InvalidTaxConfigurationError
        """
        currency = CurrencyMode(currency)
        rate = _check_exchange_rate(exchange_rate) if exchange_rate is not None else self.exchange_rate
        taxes = tax_config if tax_config is not None else self.tax_config

        with self._lock:
            repriced = []
            for item in self._items:
                entry = lookup_product(item.product_type, item.product_id)
                repriced.append(price_item(
                    item_id=item.id,
                    entry=entry,
                    contract=item.contract,
                    quantity=item.quantity,
                    commercial_discount=item.commercial_discount,
                    currency=currency,
                    exchange_rate=rate,
                    tax_config=taxes,
                ))

            self.currency = currency
            self.exchange_rate = rate
            self.tax_config = taxes
            self._items = repriced
            self._persist()

        logger.info(f"Recomputed {len(repriced)} items in {currency.value} (rate={rate})")
        return list(repriced)

    def needs_recompute(self) -> bool:
        """True when some item was priced under another currency context"""
        with self._lock:
            for item in self._items:
                if item.currency != self.currency:
                    return True
                if item.resale is not None and item.resale.exchange_rate != self.exchange_rate:
                    return True
        return False

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def _snapshot_unlocked(self) -> Quote:
        return Quote(
            items=[item.model_copy(deep=True) for item in self._items],
            counter=self._counter,
        )

    def snapshot(self) -> Quote:
        """Deep copy of the current state"""
        with self._lock:
            return self._snapshot_unlocked()

    def replace(self, quote: Quote, persist: bool = True) -> None:
        """Swap in another quote's items and counter"""
        with self._lock:
            self._items = [item.model_copy(deep=True) for item in quote.items]
            next_id = max((item.id for item in self._items), default=0) + 1
            self._counter = max(quote.counter, next_id)
            if persist:
                self._persist()

    def restore(self) -> bool:
        """
        Load the persisted working quote, if any.

        Returns:
            True when a snapshot was restored
        """
        quote = load_current_quote(storage=self.storage)
        if quote is None:
            return False
        self.replace(quote, persist=False)
        logger.info(f"Restored quote with {len(quote.items)} items")
        return True

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    def aggregate_subtotal(self) -> Decimal:
        """Sum of item subtotals (pre-discount, USD)"""
        with self._lock:
            return sum((item.subtotal for item in self._items), Decimal("0"))

    def aggregate_total(self) -> Decimal:
        """Sum of item totals in the display currency"""
        with self._lock:
            return sum((item.total for item in self._items), Decimal("0"))

    def aggregate_discount(self) -> Decimal:
        """Sum of item discount amounts (USD)"""
        with self._lock:
            return sum((item.discount_amount for item in self._items), Decimal("0"))

    def summary(self) -> Dict:
        """Totals for display"""
        with self._lock:
            return {
                "item_count": len(self._items),
                "subtotal": self.aggregate_subtotal(),
                "discount": self.aggregate_discount(),
                "total": self.aggregate_total(),
                "currency": self.currency,
                "exchange_rate": self.exchange_rate,
            }
