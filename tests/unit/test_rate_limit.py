"""Unit tests for RateLimitMiddleware with an in-memory Redis stand-in."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from src.pm_gateway.middleware.rate_limit import RateLimitMiddleware


class FakeRedis:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        return self.ttls.get(key, -1)


class BrokenRedis:
    async def incr(self, key: str) -> int:
        raise RedisConnectionError("Connection refused")


def _app(redis, enabled: bool = True) -> FastAPI:
    app = FastAPI()

    async def factory():
        return redis

    app.add_middleware(
        RateLimitMiddleware,
        redis_factory=factory,
        limits={"claims": 2, "default": 3},
        enabled=enabled,
    )

    @app.post("/api/v1/claims")
    async def claim() -> dict:
        return {"ok": True}

    @app.get("/api/v1/price")
    async def price() -> dict:
        return {"ok": True}

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_claims_limited_per_ip():
    redis = FakeRedis()
    async with _client(_app(redis)) as client:
        codes = [(await client.post("/api/v1/claims")).status_code for _ in range(3)]
        over = await client.post("/api/v1/claims")

    assert codes == [200, 200, 429]
    assert over.status_code == 429
    assert over.headers["Retry-After"] == "60"
    assert over.json()["code"] == 9001
    assert redis.ttls == {"ratelimit:127.0.0.1:claims": 60}


@pytest.mark.asyncio
async def test_groups_counted_separately():
    redis = FakeRedis()
    async with _client(_app(redis)) as client:
        for _ in range(2):
            await client.post("/api/v1/claims")
        resp = await client.get("/api/v1/price")

    assert resp.status_code == 200
    assert redis.counts["ratelimit:127.0.0.1:default"] == 1


@pytest.mark.asyncio
async def test_forwarded_for_identifies_client():
    redis = FakeRedis()
    async with _client(_app(redis)) as client:
        await client.get("/api/v1/price", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

    assert "ratelimit:203.0.113.9:default" in redis.counts


@pytest.mark.asyncio
async def test_health_never_limited():
    redis = FakeRedis()
    async with _client(_app(redis)) as client:
        codes = {(await client.get("/health")).status_code for _ in range(10)}

    assert codes == {200}
    assert redis.counts == {}


@pytest.mark.asyncio
async def test_redis_down_fails_open():
    async with _client(_app(BrokenRedis())) as client:
        resp = await client.post("/api/v1/claims")

    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_disabled():
    redis = FakeRedis()
    async with _client(_app(redis, enabled=False)) as client:
        codes = {(await client.post("/api/v1/claims")).status_code for _ in range(5)}

    assert codes == {200}
    assert redis.counts == {}
