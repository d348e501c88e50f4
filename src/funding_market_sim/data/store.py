"""
Key-value persistence for market records.

The market core only produces and consumes plain JSON-compatible records;
where they live is up to the store. Two stores are provided: an in-memory one
for tests and embedding, and a directory of JSON files.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union
from urllib.parse import quote


class KeyValueStore(Protocol):
    """Minimal read/write/clear surface the market persists through."""

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def write(self, key: str, value: Dict[str, Any]) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


def market_key(market_id: str) -> str:
    return f"cfm:market:{market_id}"


class InMemoryStore:
    """Dictionary-backed store. Values are JSON round-tripped so callers never share state."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = json.dumps(value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class JsonFileStore:
    """
    Stores each key as a JSON file in a directory.

    Keys are percent-encoded into file names, so ``cfm:market:default`` becomes
    ``cfm%3Amarket%3Adefault.json`` and distinct keys never share a file.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / (quote(key, safe="") + ".json")

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
        tmp.replace(path)

    def clear(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
