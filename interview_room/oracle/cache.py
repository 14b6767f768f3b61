from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Optional


class TTLCache:
    """
    Small time-bounded cache. Entries expire after ttl_sec and the oldest
    entries are evicted past max_items. Owned by whoever injects it.
    """

    def __init__(self, ttl_sec: float = 60.0, max_items: int = 256, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = max(0.0, float(ttl_sec))
        self.max_items = max(1, int(max_items))
        self._clock = clock
        self._lock = Lock()
        self._items: "OrderedDict[str, tuple[float, Any]]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, value = item
            if expires_at <= now:
                self._items.pop(key, None)
                return None
            self._items.move_to_end(key)
            return value

    def set(self, key: str, value: Any) -> None:
        expires_at = self._clock() + self.ttl_sec
        with self._lock:
            self._items[key] = (expires_at, value)
            self._items.move_to_end(key)
            while len(self._items) > self.max_items:
                self._items.popitem(last=False)

    def purge_expired(self) -> int:
        now = self._clock()
        removed = 0
        with self._lock:
            for key, (expires_at, _) in list(self._items.items()):
                if expires_at <= now:
                    self._items.pop(key, None)
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
