"""Redis-backed rate limiter."""
import logging
import time
from typing import Optional, Tuple
import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)

# status code -> (activity, failures within SUSPICIOUS_WINDOW_SECONDS that trigger it)
SUSPICIOUS_STATUSES = {
    401: ("unknown_actor", 5),        # X-User-Id missing, malformed or not an account
    403: ("foreign_resource", 10),    # someone else's order or product, or the wrong role
    404: ("id_enumeration", 10),      # walking product, order or user ids
}
SUSPICIOUS_WINDOW_SECONDS = 300


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Sliding-window request limits shared by every instance through Redis.

    Each request is counted against its client address and, when it names an
    acting user through ``X-User-Id``, against that user as well. Shoppers
    behind one address share the larger per-IP budget.

    Redis errors fail open: the request is allowed and the error is logged.
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = 600,
        requests_per_minute_user: int = 120,
        window_seconds: int = 60
    ):
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.window_seconds = window_seconds

    def _record(self, key: str, window: int) -> int:
        """
        Add one hit to the sorted set at ``key`` and count the hits in the window.

        Hits older than the window are pruned in the same pipeline, so a key
        never holds more than one window of entries.

        Returns:
            Number of hits in the window before this one
        """
        now = time.time()
        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(key, 0, now - window)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, window + 1)
        return pipe.execute()[1]

    def _check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int
    ) -> Tuple[bool, int]:
        """
        Count this request against ``key``.

        Returns:
            Tuple of (is_allowed, count including this request)
        """
        try:
            count = self._record(key, window)
        except redis.RedisError as e:
            logger.error(f"Redis rate limit error: {e}")
            return True, 0

        return count < limit, count + 1

    def _too_many_requests(self, limit_type: str, limit: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": f"Rate limit exceeded for {limit_type}. Maximum {limit} requests per minute."},
            headers={"Retry-After": str(self.window_seconds)}
        )

    async def dispatch(self, request: Request, call_next):
        client_ip = _client_ip(request)
        user_id = (request.headers.get("x-user-id") or "").strip() or None

        tiers = [("IP", f"rate:ip:{client_ip}", self.requests_per_minute_ip)]
        if user_id:
            tiers.append(("user", f"rate:user:{user_id}", self.requests_per_minute_user))

        for limit_type, key, limit in tiers:
            allowed, count = self._check_rate_limit(key, limit, self.window_seconds)
            if not allowed:
                rate_limit_exceeded_counter.add(1, {"limit_type": limit_type.lower()})
                logger.warning("Rate limit exceeded", extra={
                    "limit_type": limit_type.lower(),
                    "client_ip": client_ip,
                    "user_id": user_id,
                    "count": count,
                    "limit": limit
                })
                return self._too_many_requests(limit_type, limit)

        response = await call_next(request)

        if response.status_code in SUSPICIOUS_STATUSES:
            self._track_rejection(request, response.status_code, client_ip, user_id)

        return response

    def _track_rejection(self, request: Request, status_code: int, client_ip: str, user_id: Optional[str]) -> None:
        """Count a rejected request per client and warn once the rejections look deliberate."""
        activity, threshold = SUSPICIOUS_STATUSES[status_code]
        try:
            count = self._record(f"suspicious:{status_code}:{client_ip}", SUSPICIOUS_WINDOW_SECONDS) + 1
        except redis.RedisError as e:
            logger.error(f"Error tracking rejected request: {e}")
            return

        if count >= threshold:
            suspicious_activity_counter.add(1, {"type": activity})
            logger.warning("Suspicious activity detected", extra={
                "type": activity,
                "client_ip": client_ip,
                "user_id": user_id,
                "endpoint": request.url.path,
                "count": count
            })


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
