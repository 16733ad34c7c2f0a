"""Store abstraction for session and profile state.

The engine never talks to a concrete backend: it is handed stores that
implement get/put/delete by key. Backends other than the in-memory one
are deployment concerns.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Generic, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class StoreError(Exception):
    """Base exception for store errors."""
    pass


class NotFoundError(StoreError):
    """Key not present in the store."""
    pass


class BaseStore(ABC, Generic[T]):
    """Key/value store for one kind of entity."""

    def __init__(self, name: str):
        self.name = name
        logger.info("STORE_INITIALIZED", extra={"store_name": name})

    @abstractmethod
    def get(self, key: str) -> Optional[T]:
        """Return the entity for key, or None when absent."""
        pass

    @abstractmethod
    def put(self, key: str, value: T) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""
        pass

    @abstractmethod
    def keys(self) -> Iterator[str]:
        pass

    def require(self, key: str) -> T:
        """Like get(), but raises NotFoundError when absent."""
        value = self.get(key)
        if value is None:
            raise NotFoundError(f"{self.name}: no entry for key")
        return value

    def get_or_create(self, key: str, factory: Callable[[], T]) -> T:
        """Fetch key, creating and storing factory() when absent.

        Not atomic here; concrete stores that can offer atomicity override it.
        """
        value = self.get(key)
        if value is None:
            value = factory()
            self.put(key, value)
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
