import os
import time
from collections import defaultdict, deque
from threading import Lock

from settings import settings


class InMemoryRateLimiter:
    """Sliding-window counter per key. Process-local; fine for a single API instance."""

    def __init__(self):
        # key -> deque[timestamps]
        self._hits = defaultdict(deque)
        self._lock = Lock()

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.time()
        with self._lock:
            q = self._hits[key]
            while q and (now - q[0]) > window_seconds:
                q.popleft()
            if len(q) >= limit:
                return False
            q.append(now)
            return True


_limiter = InMemoryRateLimiter()


def _enabled() -> bool:
    raw = os.getenv("RATE_LIMIT_ENABLED")
    if raw is None:
        return bool(settings.RATE_LIMIT_ENABLED)
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _login_limit() -> int:
    raw = os.getenv("RATE_LIMIT_LOGIN_PER_MIN")
    try:
        return int(raw) if raw else int(settings.RATE_LIMIT_LOGIN_PER_MIN)
    except ValueError:
        return int(settings.RATE_LIMIT_LOGIN_PER_MIN)


def allow_login(client_key: str) -> bool:
    if not _enabled():
        return True
    return _limiter.allow(f"login:{client_key}", _login_limit(), 60)
