import logging

import redis

from ...application.ports.rate_limiter import RateLimiter
from ...exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisRateLimiter(RateLimiter):
    """Fixed-window counter shared by every worker process."""

    def __init__(self, url: str, prefix: str = "rl:", client: "redis.Redis" = None) -> None:
        self.client = client or redis.Redis.from_url(url)
        self.prefix = prefix

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        window_key = f"{self.prefix}{key}:{window_seconds}"
        try:
            pipe = self.client.pipeline()
            pipe.incr(window_key, 1)
            pipe.expire(window_key, window_seconds)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Rate limiter unavailable: {e}")
            raise StorageError("Rate limiter unavailable") from e
        return int(count) <= int(max_requests)
