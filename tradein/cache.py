from typing import Any, Callable, Dict, Optional, Tuple
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


def make_key(*parts: Any) -> str:
    return ":".join(str(p if p is not None else "").strip().lower() for p in parts)


class TTLCache:
    """Process-local map of key -> (value, inserted_at).

    Reads at or past ``ttl`` seconds after insertion are misses. Expired
    entries are also removed in bulk by ``sweep``.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl = ttl_seconds
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _expired(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at >= self.ttl

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, inserted_at = entry
        if self._expired(inserted_at, self._clock()):
            self._store.pop(key, None)
            return None
        return value

    def age(self, key: str) -> Optional[float]:
        entry = self._store.get(key)
        if entry is None:
            return None
        return self._clock() - entry[1]

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (value, self._clock())

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self._store.clear()

    def keys(self):
        return list(self._store.keys())

    def sweep(self) -> int:
        now = self._clock()
        stale = [k for k, (_, ts) in self._store.items() if self._expired(ts, now)]
        for k in stale:
            del self._store[k]
        return len(stale)


async def run_sweeper(caches, interval: float) -> None:
    """Call ``sweep()`` on every entry of ``caches`` each ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        for name, cache in caches.items():
            removed = cache.sweep()
            if removed:
                logger.debug("Swept %d expired entries from %s", removed, name)
