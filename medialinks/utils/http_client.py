import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

from medialinks.config.settings import Config, HttpConfig
from medialinks.core.errors import UpstreamUnreachable
from medialinks.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


def build_http_client(config: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Request-scoped client; per-phase timeouts, the overall deadline is set in UpstreamClient.get"""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http.timeout_seconds),
        follow_redirects=True,
        transport=transport,
    )


class UpstreamClient:
    """
    Thin wrapper around httpx.AsyncClient for upstream calls.
    Each call is attempted once; transport failures and timeouts
    become UpstreamUnreachable so the caller never sees raw httpx errors.
    """

    def __init__(self, client: httpx.AsyncClient, http_config: HttpConfig):
        self.client = client
        self.http_config = http_config

    def browser_headers(self, url: str) -> Dict[str, str]:
        parsed = urlparse(url)
        return {
            "User-Agent": self.http_config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self.http_config.accept_language,
            "Referer": f"{parsed.scheme}://{parsed.netloc}/",
        }

    async def get(
        self,
        url: str,
        upstream: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        GET url; ``upstream`` is the display name used in error messages.
        http.timeout_seconds bounds the whole exchange, body included.
        """
        try:
            response = await asyncio.wait_for(
                self.client.get(url, headers=headers, params=params),
                timeout=self.http_config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Timeout fetching {safe_url_for_log(url)}")
            raise UpstreamUnreachable(
                key="error.upstream_timeout",
                upstream=upstream,
                seconds=self.http_config.timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Request to {safe_url_for_log(url)} failed: {type(e).__name__}")
            raise UpstreamUnreachable(upstream=upstream)

        logger.debug(f"{response.status_code} {safe_url_for_log(str(response.url))}")
        return response
