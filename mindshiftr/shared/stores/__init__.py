"""Session and profile stores."""
from .base import BaseStore, NotFoundError, StoreError
from .memory import InMemoryStore

__all__ = ["BaseStore", "InMemoryStore", "NotFoundError", "StoreError"]
