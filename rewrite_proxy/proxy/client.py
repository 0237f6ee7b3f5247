import logging
from typing import Optional

import httpx

from rewrite_proxy.proxy.settings import ProxySettings, load_settings

logger = logging.getLogger("uvicorn.error")

_client: Optional[httpx.AsyncClient] = None


def create_http_client(settings: ProxySettings) -> httpx.AsyncClient:
    """Build the pooled client shared by all proxied requests."""
    headers = {"User-Agent": settings.user_agent} if settings.user_agent else None
    if settings.allow_unsafe_cert:
        logger.warning(
            f"Upstream TLS verification disabled for {settings.target_host}"
        )
    return httpx.AsyncClient(
        headers=headers,
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=settings.follow_redirects,
        verify=not settings.allow_unsafe_cert,
    )


def get_http_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = create_http_client(load_settings())
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None
