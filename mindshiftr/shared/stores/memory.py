"""Thread-safe in-memory store used by the HTTP handler and tests."""
import logging
import threading
from typing import Callable, Dict, Iterator, Optional, TypeVar

from .base import BaseStore

logger = logging.getLogger(__name__)

T = TypeVar('T')


class InMemoryStore(BaseStore[T]):
    """Dict-backed store guarded by a re-entrant lock."""

    def __init__(self, name: str):
        super().__init__(name)
        self._data: Dict[str, T] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: T) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))

    def get_or_create(self, key: str, factory: Callable[[], T]) -> T:
        with self._lock:
            value = self._data.get(key)
            if value is None:
                value = factory()
                self._data[key] = value
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
