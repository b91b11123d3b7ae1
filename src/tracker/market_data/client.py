"""Thin CoinGecko HTTP client.

Uses urllib.request (stdlib) run in a worker thread so the event loop is
never blocked. The client only distinguishes status codes and decodes
JSON; retry and fallback policy live in MarketDataFetcher.
"""

import asyncio
import http.client
import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tracker.config import ProviderSettings
from tracker.exceptions import MalformedPayloadError
from tracker.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderResponse:
    """HTTP status plus decoded JSON body (None unless status is 200)."""

    status: int
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.status == 200


class CoinGeckoClient:
    """Issues GET requests against the CoinGecko v3 API.

    Args:
        settings: Provider settings (base URL, user agent, optional key).
        opener: Callable with the signature of urllib.request.urlopen.
            Injectable so tests never touch the network.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        opener: Callable[..., Any] = urllib.request.urlopen,
    ) -> None:
        self._settings = settings
        self._opener = opener

    def build_url(self, path: str, params: dict[str, str] | None = None) -> str:
        query = dict(params or {})
        api_key = self._settings.api_key.get_secret_value()
        if api_key:
            query["x_cg_demo_api_key"] = api_key
        url = f"{self._settings.base_url.rstrip('/')}/{path.lstrip('/')}"
        if query:
            url += "?" + urllib.parse.urlencode(query, safe=",")
        return url

    async def get(
        self,
        path: str,
        params: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> ProviderResponse:
        """GET ``path`` and return the status and decoded body.

        Non-2xx statuses are returned, not raised. Network failures
        (URLError, timeouts, truncated or garbled responses) propagate to
        the caller as OSError. An undecodable 200 body raises
        MalformedPayloadError.
        """
        url = self.build_url(path, params)
        return await asyncio.to_thread(self._get_blocking, url, timeout)

    def _get_blocking(self, url: str, timeout: float) -> ProviderResponse:
        headers = {"Accept": "application/json", "User-Agent": self._settings.user_agent}
        req = urllib.request.Request(url, headers=headers)
        try:
            with self._opener(req, timeout=timeout) as resp:
                status = getattr(resp, "status", 200)
                body = resp.read()
        except urllib.error.HTTPError as e:
            logger.debug("provider_http_error", url=url, status=e.code)
            return ProviderResponse(status=e.code)
        except http.client.HTTPException as e:
            # Dropped connections and truncated bodies are transport failures
            raise ConnectionError(f"incomplete response from {url}: {e!r}") from e

        if status != 200:
            return ProviderResponse(status=status)

        try:
            return ProviderResponse(status=200, payload=json.loads(body))
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedPayloadError(f"invalid JSON from {url}: {e}", status=200) from e
