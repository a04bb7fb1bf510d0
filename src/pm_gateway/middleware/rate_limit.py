"""Rate limiting middleware — Redis fixed-window counters.

Rules:
  - Claim submissions (POST /api/v1/claims...): RATE_LIMIT_CLAIMS_PER_MIN per IP
  - Everything else under /api/v1:              RATE_LIMIT_DEFAULT_PER_MIN per IP
  - /health is never limited

Each window is one Redis key ``ratelimit:{ip}:{group}`` created by INCR and
given a 60 s TTL on its first hit. Over the limit the request is answered
with 429 (code 9001) and a Retry-After header. If Redis is unreachable the
request passes; the limiter never takes the keeper down with it.
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.pm_common.errors import RateLimitError
from src.pm_common.redis_client import get_redis
from src.pm_common.response import error_response

logger = logging.getLogger(__name__)

WINDOW_SECS = 60
_API_PREFIX = "/api/v1"
_CLAIMS_PREFIX = "/api/v1/claims"


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a reverse proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def endpoint_group(request: Request) -> str | None:
    """Return the limit group for this request, or None when it is not limited."""
    path = request.url.path
    if not path.startswith(_API_PREFIX):
        return None
    if request.method == "POST" and path.startswith(_CLAIMS_PREFIX):
        return "claims"
    return "default"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        limits: dict[str, int] | None = None,
        enabled: bool | None = None,
    ) -> None:
        super().__init__(app)
        self._redis_factory = redis_factory
        self._limits = limits or {
            "claims": settings.RATE_LIMIT_CLAIMS_PER_MIN,
            "default": settings.RATE_LIMIT_DEFAULT_PER_MIN,
        }
        self._enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        group = endpoint_group(request) if self._enabled else None
        if group is None:
            return await call_next(request)

        key = f"ratelimit:{client_ip(request)}:{group}"
        try:
            redis = await self._redis_factory()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, WINDOW_SECS)
            if count > self._limits[group]:
                ttl = await redis.ttl(key)
                return self._reject(request, key, ttl if ttl > 0 else WINDOW_SECS)
        except RedisError as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)

        return await call_next(request)

    @staticmethod
    def _reject(request: Request, key: str, retry_after: int) -> JSONResponse:
        logger.warning("Rate limit exceeded: %s", key)
        err = RateLimitError()
        resp = error_response(err.code, err.message)
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
        return JSONResponse(
            status_code=err.http_status,
            content=resp.model_dump(),
            headers={"Retry-After": str(retry_after)},
        )
