"""Session-scoped key-value store shared by runs of the pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict

import anyio


class SessionStore(ABC):
    """Key-value service holding the response cache, stream buffer and results.

    ``update`` is the only read-modify-write entry point; implementations must
    apply it atomically with respect to other calls on the same store.
    """

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default``."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    async def update(
        self, key: str, func: Callable[[Any], Any], default: Any = None
    ) -> Any:
        """Atomically replace the value with ``func(current)`` and return it."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key`` if present."""


class InMemorySessionStore(SessionStore):
    """Process-local store; contents live as long as the process does.

    Values are handed out by reference and must be treated as immutable.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = anyio.Lock()

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._lock:
            return self._data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = value

    async def update(
        self, key: str, func: Callable[[Any], Any], default: Any = None
    ) -> Any:
        async with self._lock:
            current = self._data.get(key, default)
            updated = func(current)
            self._data[key] = updated
            return updated

    async def remove(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)
