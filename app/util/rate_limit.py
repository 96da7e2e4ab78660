"""Fixed-window admission control keyed by client IP.

Counters live in Redis when REDIS_URL is configured, otherwise in a
process-local store (fine for a single worker and for tests).
"""
import logging
import threading
import time
from dataclasses import dataclass

import redis
from starlette.requests import Request

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: int  # epoch seconds at which the current window ends


class MemoryCounterStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._buckets: dict[str, tuple[int, float]] = {}

    def incr(self, key: str, ttl: int) -> int:
        now = time.time()
        with self._lock:
            count, expires_at = self._buckets.get(key, (0, now + ttl))
            if expires_at <= now:
                count, expires_at = 0, now + ttl
            count += 1
            self._buckets[key] = (count, expires_at)
            if len(self._buckets) > 10_000:
                self._evict(now)
            return count

    def _evict(self, now: float) -> None:
        for k in [k for k, (_, exp) in self._buckets.items() if exp <= now]:
            del self._buckets[k]

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


class RedisCounterStore:
    def __init__(self, client: redis.Redis):
        self._client = client

    def incr(self, key: str, ttl: int) -> int:
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, ttl, nx=True)
        count, _ = pipe.execute()
        return int(count)

    def clear(self) -> None:
        pass


def build_store():
    if settings.REDIS_URL:
        return RedisCounterStore(redis.Redis.from_url(settings.REDIS_URL))
    return MemoryCounterStore()


class FixedWindowLimiter:
    def __init__(self, prefix: str, limit: int, window_sec: int, store=None):
        self.prefix = prefix
        self.limit = limit
        self.window_sec = window_sec
        self.store = store if store is not None else MemoryCounterStore()

    def check(self, client_key: str, now: float | None = None) -> RateLimitResult:
        now = time.time() if now is None else now
        window = int(now // self.window_sec)
        reset = (window + 1) * self.window_sec
        count = self.store.incr(f"{self.prefix}:{client_key}:{window}", self.window_sec)
        remaining = max(0, self.limit - count)
        if count > self.limit:
            logger.warning("rate limit exceeded", extra={"limiter": self.prefix, "client": client_key})
        return RateLimitResult(success=count <= self.limit, limit=self.limit, remaining=remaining, reset=reset)

    def reset(self) -> None:
        self.store.clear()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


# Orders: ORDER_RATE_LIMIT requests / ORDER_RATE_WINDOW_SEC per IP
order_limiter = FixedWindowLimiter(
    "orders", settings.ORDER_RATE_LIMIT, settings.ORDER_RATE_WINDOW_SEC, build_store(),
)
