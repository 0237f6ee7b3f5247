# Make `import rewrite_proxy` work when pytest is run from a checkout
import os
import sys

SERVICE_ROOT = os.path.dirname(__file__)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

import logging  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from starlette.requests import Request  # noqa: E402

from rewrite_proxy.proxy.settings import ProxySettings  # noqa: E402

TEST_TARGET_HOST = "www.reddit.com"
TEST_PROXY_HOST = "proxy.local"


@pytest.fixture
def proxy_settings():
    """Settings with the stock header exclusions and no default User-Agent."""
    return ProxySettings(target_host=TEST_TARGET_HOST, protocol="https")


@pytest.fixture
def make_request():
    """Build a real Starlette request from plain values."""

    def _make_request(
        method="GET",
        path="/",
        query="",
        headers=None,
        body=b"",
        scheme="http",
        host=TEST_PROXY_HOST,
    ):
        header_items = list(headers.items() if isinstance(headers, dict) else headers or [])
        if not any(name.lower() == "host" for name, _ in header_items):
            header_items.insert(0, ("host", host))
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": scheme,
            "path": path,
            "raw_path": path.encode("latin-1"),
            "root_path": "",
            "query_string": query.encode("latin-1"),
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in header_items
            ],
            "client": ("192.168.1.100", 51000),
            "server": (host, 80),
        }
        sent = False

        async def receive():
            nonlocal sent
            if sent:
                return {"type": "http.disconnect"}
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return _make_request


@pytest.fixture
def upstream_client():
    """An AsyncClient whose transport is a handler function; records requests."""

    def _upstream_client(handler, **kwargs):
        seen = []

        def _record(request: httpx.Request):
            seen.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_record), **kwargs)
        client.seen_requests = seen
        return client

    return _upstream_client


@pytest.fixture
def uvicorn_caplog(caplog):
    """caplog that also sees records from the shared uvicorn.error logger."""
    uvicorn_logger = logging.getLogger("uvicorn.error")
    orig_propagate = uvicorn_logger.propagate
    uvicorn_logger.propagate = True
    with caplog.at_level(logging.DEBUG, logger="uvicorn.error"):
        yield caplog
    uvicorn_logger.propagate = orig_propagate
