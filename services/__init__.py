"""
Quotation Calculator Services

Key-value storage with in-memory fallback.
Quote persistence and bounded history.
Quote store (working quote of one session).
Session service used by the presentation layer.
"""

from .storage import (
    KeyValueStore,
    MemoryStore,
    JsonFileStore,
    FallbackStore,
    StorageUnavailableError,
    open_storage,
    get_storage,
)
from .quote_history_service import (
    save_current_quote,
    load_current_quote,
    clear_current_quote,
    save_quote_to_history,
    list_history,
    load_quote_from_history,
    delete_quote_from_history,
    save_currency_preference,
    load_currency_preference,
    MAX_HISTORY,
)
from .quote_store import QuoteStore
from .quote_session_service import QuoteSession, QuoteActionResult

__all__ = [
    # Storage
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "FallbackStore",
    "StorageUnavailableError",
    "open_storage",
    "get_storage",
    # History
    "save_current_quote",
    "load_current_quote",
    "clear_current_quote",
    "save_quote_to_history",
    "list_history",
    "load_quote_from_history",
    "delete_quote_from_history",
    "save_currency_preference",
    "load_currency_preference",
    "MAX_HISTORY",
    # Store and session
    "QuoteStore",
    "QuoteSession",
    "QuoteActionResult",
]
