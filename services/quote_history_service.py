"""
Quote History Service

Persists the working quote after every change and keeps a bounded,
most-recent-first history of named quote snapshots.

Storage keys:
- clickup_current_quote   {items, counter, timestamp}
- clickup_quotes_history  [{id, name, items, total, timestamp, itemCount}, ...]
- clickup_currency        selected currency mode
- clickup_exchange_rate   selected USD -> BRL rate

Reads never raise: malformed stored data is logged and treated as absent.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import ValidationError

from pricing_models import Quote, SavedQuote, QuoteLineItem, CurrencyMode
from services.storage import KeyValueStore, get_storage

logger = logging.getLogger(__name__)

CURRENT_QUOTE_KEY = "clickup_current_quote"
HISTORY_KEY = "clickup_quotes_history"
CURRENCY_KEY = "clickup_currency"
EXCHANGE_RATE_KEY = "clickup_exchange_rate"

MAX_HISTORY = 50


def _read_json(storage: KeyValueStore, key: str):
    """Load JSON stored under key; None when absent or malformed"""
    raw = storage.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Corrupt data under '{key}', ignoring: {e}")
        return None


def _next_counter(items: List[QuoteLineItem]) -> int:
    """max(existing ids) + 1, or 1 for an empty list"""
    return max((item.id for item in items), default=0) + 1


# =============================================================================
# CURRENT QUOTE
# =============================================================================

def save_current_quote(quote: Quote, storage: Optional[KeyValueStore] = None) -> None:
    """
    Overwrite the persisted working quote.

    Args:
        quote: Items and next-id counter
        storage: Backend (defaults to the process-wide store)
    """
    if storage is None:
        storage = get_storage()

    payload = {
        "items": [item.model_dump(mode="json") for item in quote.items],
        "counter": quote.counter,
        "timestamp": datetime.now().isoformat(),
    }
    storage.set(CURRENT_QUOTE_KEY, json.dumps(payload, ensure_ascii=False))


def load_current_quote(storage: Optional[KeyValueStore] = None) -> Optional[Quote]:
    """
    Restore the persisted working quote.

    Returns:
        Quote, or None when nothing is stored or the data is malformed
    """
    if storage is None:
        storage = get_storage()

    data = _read_json(storage, CURRENT_QUOTE_KEY)
    if data is None:
        return None
    if not isinstance(data, dict):
        logger.warning(f"Corrupt data under '{CURRENT_QUOTE_KEY}': expected an object")
        return None

    try:
        quote = Quote(items=data.get("items") or [], counter=data.get("counter") or 1)
    except ValidationError as e:
        logger.warning(f"Corrupt data under '{CURRENT_QUOTE_KEY}', ignoring: {e}")
        return None

    # Never hand out an id that is already in use
    counter = max(quote.counter, _next_counter(quote.items))
    if counter != quote.counter:
        quote = Quote(items=quote.items, counter=counter)
    return quote


def clear_current_quote(storage: Optional[KeyValueStore] = None) -> None:
    """Delete the persisted working quote"""
    if storage is None:
        storage = get_storage()
    storage.remove(CURRENT_QUOTE_KEY)


# =============================================================================
# HISTORY
# =============================================================================

def list_history(storage: Optional[KeyValueStore] = None) -> List[SavedQuote]:
    """
    All saved quotes, most recent first.

    Malformed entries are skipped (and logged); malformed history is empty.
    """
    if storage is None:
        storage = get_storage()

    data = _read_json(storage, HISTORY_KEY)
    if data is None:
        return []
    if not isinstance(data, list):
        logger.warning(f"Corrupt data under '{HISTORY_KEY}': expected a list")
        return []

    history = []
    for entry in data:
        try:
            history.append(SavedQuote.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping corrupt history entry: {e}")
    return history[:MAX_HISTORY]


def _write_history(history: List[SavedQuote], storage: KeyValueStore) -> None:
    payload = [entry.model_dump(mode="json", by_alias=True) for entry in history[:MAX_HISTORY]]
    storage.set(HISTORY_KEY, json.dumps(payload, ensure_ascii=False))


def save_quote_to_history(
    name: str,
    quote: Quote,
    storage: Optional[KeyValueStore] = None,
    now: Optional[datetime] = None
) -> Optional[SavedQuote]:
    """
    Save an immutable named snapshot of the quote.

    Items are deep-copied. The entry id is the creation time in epoch
    milliseconds, bumped past the newest entry if two saves share a
    millisecond. Only the MAX_HISTORY most recent entries are kept.

    Args:
        name: Display name (a dated default is used when blank)
        quote: Quote to snapshot
        storage: Backend (defaults to the process-wide store)
        now: Creation time (defaults to the current time)

    Returns:
        Created SavedQuote, or None when the quote has no items
    """
    if not quote.items:
        logger.info("Refusing to save an empty quote to history")
        return None

    if storage is None:
        storage = get_storage()
    if now is None:
        now = datetime.now()

    history = list_history(storage)

    entry_id = int(now.timestamp() * 1000)
    if history and entry_id <= history[0].id:
        entry_id = history[0].id + 1

    items = [item.model_copy(deep=True) for item in quote.items]
    name = (name or "").strip() or f"Cotação {now.strftime('%d/%m/%Y %H:%M')}"

    saved = SavedQuote(
        id=entry_id,
        name=name,
        items=items,
        total=sum((item.total for item in items), Decimal("0")),
        timestamp=now.isoformat(),
        item_count=len(items),
    )

    history.insert(0, saved)
    _write_history(history, storage)

    logger.info(f"Saved quote '{saved.name}' to history ({saved.item_count} items, id={saved.id})")
    return saved


def load_quote_from_history(entry_id: int, storage: Optional[KeyValueStore] = None) -> Optional[Quote]:
    """
    Copy a history entry back into a live Quote.

    Returns:
        Quote with counter = max(ids) + 1, or None if the id is unknown
    """
    for entry in list_history(storage):
        if entry.id == entry_id:
            items = [item.model_copy(deep=True) for item in entry.items]
            return Quote(items=items, counter=_next_counter(items))
    return None


def delete_quote_from_history(entry_id: int, storage: Optional[KeyValueStore] = None) -> bool:
    """
    Remove a history entry.

    Returns:
        True if an entry was removed, False if the id was not found
    """
    if storage is None:
        storage = get_storage()

    history = list_history(storage)
    remaining = [entry for entry in history if entry.id != entry_id]
    if len(remaining) == len(history):
        return False

    _write_history(remaining, storage)
    logger.info(f"Deleted quote {entry_id} from history")
    return True


# =============================================================================
# CURRENCY PREFERENCE
# =============================================================================

def save_currency_preference(
    currency: CurrencyMode,
    exchange_rate: Decimal,
    storage: Optional[KeyValueStore] = None
) -> None:
    """Persist the selected currency mode and exchange rate"""
    if storage is None:
        storage = get_storage()
    storage.set(CURRENCY_KEY, CurrencyMode(currency).value)
    storage.set(EXCHANGE_RATE_KEY, str(exchange_rate))


def load_currency_preference(
    storage: Optional[KeyValueStore] = None
) -> Tuple[Optional[CurrencyMode], Optional[Decimal]]:
    """
    Restore the selected currency mode and exchange rate.

    Returns:
        (currency, rate); each is None when absent or invalid
    """
    if storage is None:
        storage = get_storage()

    currency = None
    raw_currency = storage.get(CURRENCY_KEY)
    if raw_currency is not None:
        try:
            currency = CurrencyMode(raw_currency)
        except ValueError:
            logger.warning(f"Ignoring stored currency {raw_currency!r}")

    rate = None
    raw_rate = storage.get(EXCHANGE_RATE_KEY)
    if raw_rate is not None:
        try:
            rate = Decimal(raw_rate)
        except ArithmeticError:
            rate = None
        if rate is None or not rate.is_finite() or rate <= 0:
            logger.warning(f"Ignoring stored exchange rate {raw_rate!r}")
            rate = None

    return currency, rate
