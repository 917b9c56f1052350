"""Storage adapter over SQLite feed databases."""

from gtfsdb.core.store.database import FeedStore, StoreRow

__all__ = ["FeedStore", "StoreRow"]
