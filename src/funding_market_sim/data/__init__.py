from .store import InMemoryStore, JsonFileStore, KeyValueStore, market_key

__all__ = ["KeyValueStore", "InMemoryStore", "JsonFileStore", "market_key"]
