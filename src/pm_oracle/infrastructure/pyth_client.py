"""Pyth Hermes HTTP client — raw transport, no parsing beyond JSON."""

import logging
from typing import Any

import httpx

from src.pm_common.errors import OracleMalformedError, OracleUnavailableError

logger = logging.getLogger(__name__)


class PythPriceClient:
    def __init__(
        self,
        endpoint: str,
        feed_id: str,
        timeout_secs: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{endpoint.rstrip('/')}/api/latest_price_feeds"
        self._feed_id = feed_id
        self._client = http_client or httpx.AsyncClient(timeout=timeout_secs)

    async def fetch_latest_price_feeds(self) -> Any:
        try:
            response = await self._client.get(self._url, params={"ids[]": self._feed_id})
        except httpx.HTTPError as exc:
            logger.warning("Pyth request failed: %s", exc)
            raise OracleUnavailableError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise OracleUnavailableError(f"Pyth API error: {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise OracleMalformedError("response body is not JSON") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
