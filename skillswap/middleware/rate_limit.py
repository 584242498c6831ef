"""Redis sliding-window rate limiting middleware."""

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from skillswap.logging_config import get_logger

logger = get_logger(__name__)

SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

DEFAULT_LIMIT = 120
DEFAULT_WINDOW = 60  # seconds


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-caller request allowance per window, kept in a Redis sorted set.

    Fails open: if Redis is unavailable the request is let through.
    """

    def __init__(self, app, redis_getter, limit: int = DEFAULT_LIMIT, window: int = DEFAULT_WINDOW):
        super().__init__(app)
        self._redis_getter = redis_getter
        self._limit = limit
        self._window = window

    def _identifier(self, request: Request) -> str:
        # Bearer tokens share a header prefix, so key on the tail
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer ") and len(auth_header) > 23:
            return f"token:{auth_header[-16:]}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    async def _count(self, key: str) -> int:
        redis = self._redis_getter()
        now = time.time()
        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, 0, now - self._window)
        pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
        pipe.zcard(key)
        pipe.expire(key, self._window + 1)
        results = await pipe.execute()
        return results[2]

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        identifier = self._identifier(request)
        try:
            request_count = await self._count(f"ratelimit:{identifier}")
        except Exception as e:
            logger.warning("rate_limit_redis_error", error=str(e))
            return await call_next(request)

        if request_count > self._limit:
            logger.warning(
                "rate_limit_exceeded",
                identifier=identifier,
                path=request.url.path,
                count=request_count,
                limit=self._limit,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": f"Too many requests: {self._limit} per {self._window}s",
                    "error": "rate_limit_exceeded",
                },
                headers={"Retry-After": str(self._window)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self._limit - request_count))
        return response
