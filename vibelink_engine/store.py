"""
State Store
===========

Key-value repositories the aggregator reads and writes through.

The aggregator only depends on the Repository contract (get / set); the
concrete backend is chosen by whoever builds the engine:
    - InMemoryRepository: process-local dict, the default
    - JsonFileRepository: one JSON file per key, survives restarts
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from .exceptions import StoreError
from .utils import digest

logger = logging.getLogger(__name__)

V = TypeVar("V")


class Repository(ABC, Generic[V]):
    """Minimal key-value contract."""

    @abstractmethod
    def get(self, key: Hashable) -> Optional[V]:
        """Return the value stored under key, or None."""

    @abstractmethod
    def set(self, key: Hashable, value: V) -> None:
        """Store value under key, replacing any previous value."""


class InMemoryRepository(Repository[V]):
    """Thread-safe dict-backed repository."""

    def __init__(self):
        self._data: Dict[Hashable, V] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._data[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class JsonFileRepository(Repository[V]):
    """
    File-based repository, one JSON document per key.

    Values are converted with the supplied encode / decode callables,
    typically a model's to_dict / from_dict.
    """

    def __init__(
        self,
        directory: str,
        encode: Callable[[V], Dict[str, Any]],
        decode: Callable[[Dict[str, Any]], V],
    ):
        """
        Initialize repository.

        Args:
            directory: Directory holding the JSON files (created if missing)
            encode: Converts a value to a JSON-serializable dict
            decode: Rebuilds a value from its dict form
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.encode = encode
        self.decode = decode
        self._lock = threading.Lock()

    def _path(self, key: Hashable) -> Path:
        return self.directory / f"{digest(key)}.json"

    def get(self, key: Hashable) -> Optional[V]:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    stored = json.load(f)
                return self.decode(stored['data'])
            except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
                logger.error(f"Failed to read {path}: {e}")
                raise StoreError(f"Failed to read key {key!r}: {e}") from e

    def set(self, key: Hashable, value: V) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        payload = {'key': key, 'data': self.encode(value)}

        with self._lock:
            try:
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, default=str)
                tmp_path.replace(path)
            except OSError as e:
                logger.error(f"Failed to write {path}: {e}")
                raise StoreError(f"Failed to write key {key!r}: {e}") from e
