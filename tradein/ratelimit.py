from typing import Callable, Dict, List
import time

from fastapi import Request

WINDOW_SECONDS = 60.0


class SlidingWindowLimiter:
    """Per-client request counter over a trailing window.

    A request is rejected when the client already made ``max_requests``
    requests within the window; rejected requests are not recorded.
    """

    def __init__(self, max_requests: int, window_seconds: float = WINDOW_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.max_requests = max_requests
        self.window = window_seconds
        self._clock = clock
        self._hits: Dict[str, List[float]] = {}

    def _recent(self, client_id: str, now: float) -> List[float]:
        recent = [ts for ts in self._hits.get(client_id, []) if now - ts < self.window]
        if recent:
            self._hits[client_id] = recent
        else:
            self._hits.pop(client_id, None)
        return recent

    def hit(self, client_id: str) -> bool:
        now = self._clock()
        recent = self._recent(client_id, now)
        if len(recent) >= self.max_requests:
            return False
        recent.append(now)
        self._hits[client_id] = recent
        return True

    def retry_after(self, client_id: str) -> float:
        now = self._clock()
        recent = self._recent(client_id, now)
        if len(recent) < self.max_requests:
            return 0.0
        return max(0.0, self.window - (now - recent[0]))

    def sweep(self) -> int:
        """Forget clients with no requests left in the window; returns how many."""
        now = self._clock()
        idle = [cid for cid, hits in self._hits.items() if not any(now - ts < self.window for ts in hits)]
        for cid in idle:
            del self._hits[cid]
        return len(idle)

    def __len__(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()


def client_ip(request: Request) -> str:
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        first = fwd.split(",")[0].strip()
        if first:
            return first
    cf = request.headers.get("cf-connecting-ip")
    if cf and cf.strip():
        return cf.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
