import threading
import time
from typing import Dict, List, Tuple

from ...application.ports.rate_limiter import RateLimiter

SWEEP_INTERVAL_SECONDS = 60


class InMemoryRateLimiter(RateLimiter):
    """Sliding window per key, for a single process.

    Keys whose window has fully elapsed are dropped on a periodic sweep so
    one-off destinations do not accumulate.
    """

    def __init__(self) -> None:
        self._store: Dict[str, Tuple[int, List[float]]] = {}
        self._lock = threading.Lock()
        self._last_sweep = time.time()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        now = time.time()
        window_start = now - window_seconds
        with self._lock:
            self._sweep(now)
            # prune
            _, hits = self._store.get(key, (window_seconds, []))
            times = [t for t in hits if t > window_start]
            if len(times) >= max_requests:
                self._store[key] = (window_seconds, times)
                return False
            times.append(now)
            self._store[key] = (window_seconds, times)
            return True

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < SWEEP_INTERVAL_SECONDS:
            return
        self._last_sweep = now
        stale = [k for k, (window, times) in self._store.items() if not times or times[-1] <= now - window]
        for k in stale:
            del self._store[k]

    def __len__(self) -> int:
        return len(self._store)
