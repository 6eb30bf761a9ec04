from company_lookup.storage.recent_searches import (
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    RecentSearchStore,
)

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "RecentSearchStore",
]
