"""
Rate Limiting Middleware

Per-tenant token bucket stored in Redis.

When Redis is unreachable the limiter lets requests through and logs
a warning; dispatch jobs must not stall because the cache is down.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Tuple
import redis
import time
import logging
from tms.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token bucket rate limiter per tenant.

    Bucket size and refill rate come from the tenant row when set,
    otherwise from settings.
    """

    def __init__(self, app):
        super().__init__(app)
        self.redis_client = None
        self.redis_available = False

        if not settings.RATE_LIMIT_ENABLED:
            logger.info("Rate limiting disabled by configuration")
        else:
            try:
                self.redis_client = redis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
                self.redis_client.ping()
                self.redis_available = True
                logger.info("Redis connection established for rate limiting")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.error(f"Redis connection failed: {e}")

        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting per tenant."""

        if not self.redis_available or any(
            request.url.path.startswith(path) for path in self.excluded_paths
        ):
            return await call_next(request)

        # Set by TenantMiddleware
        tenant = getattr(request.state, "tenant", None)
        if not tenant:
            return await call_next(request)

        allowed, retry_after = self._check_rate_limit(tenant)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for tenant {tenant.slug}",
                extra={"tenant_id": tenant.id}
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    def _check_rate_limit(self, tenant) -> Tuple[bool, int]:
        """
        Check if request is allowed under rate limit.

        Returns: (allowed, retry_after_seconds)
        """
        rate_limit = tenant.rate_limit_per_minute or settings.RATE_LIMIT_PER_MINUTE
        burst = tenant.rate_limit_burst or settings.RATE_LIMIT_BURST

        key = f"rate_limit:{tenant.id}"
        key_timestamp = f"{key}:timestamp"

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)

            now = time.time()

            if current_tokens is None:
                current_tokens = burst - 1
                self.redis_client.setex(key, 60, current_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            current_tokens = float(current_tokens)
            last_update = float(last_update) if last_update else now

            elapsed = now - last_update
            tokens_to_add = elapsed * (rate_limit / 60.0)
            new_tokens = min(burst, current_tokens + tokens_to_add)

            if new_tokens >= 1:
                new_tokens -= 1
                self.redis_client.setex(key, 60, new_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            tokens_needed = 1 - new_tokens
            retry_after = int((tokens_needed / (rate_limit / 60.0)) + 1)
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0
