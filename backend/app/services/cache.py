"""
Caching Service.

Small in-memory TTL cache for aggregate queries (statistics). One
instance is created at startup and injected where needed; there is no
module-level store.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    
    def __init__(self, default_ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}
    
    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        
        expires_at, data = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
            
        return data

    def set(self, key: str, data: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._store[key] = (self._clock() + ttl, data)
    
    def invalidate(self, prefix: str) -> int:
        """Drop every key starting with prefix; returns how many were dropped."""
        keys = [key for key in self._store if key.startswith(prefix)]
        for key in keys:
            del self._store[key]
        return len(keys)
        
    def clear(self) -> None:
        self._store.clear()
    
    def __len__(self) -> int:
        return len(self._store)
