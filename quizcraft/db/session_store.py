"""
Recoverable storage for in-progress quiz sessions
"""

import abc
import time
from typing import Dict, Optional, Tuple


class SessionStore(abc.ABC):
    """Key/value store holding serialized quiz sessions"""

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        ...

    @abc.abstractmethod
    async def delete(self, key: str) -> bool:
        ...


class MemorySessionStore(SessionStore):
    """Process-local store, used when Redis is not configured"""

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> bool:
        self._data.pop(key, None)
        return True
