import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace

from rewrite_proxy.proxy.client import get_http_client
from rewrite_proxy.proxy.forwarder import build_proxy_request
from rewrite_proxy.proxy.media_type import is_html_content, mime_type_of
from rewrite_proxy.proxy.relay import relay_response
from rewrite_proxy.proxy.settings import ProxySettings, load_settings
from rewrite_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE"]


def is_success_status(status_code: int) -> bool:
    """2xx and 3xx are relayed without a diagnostic."""
    return 200 <= status_code < 400


async def log_upstream_failure(upstream: httpx.Response) -> None:
    await upstream.aread()
    logger.warning(
        f"Request failed with status code {upstream.status_code} and reason {upstream.text}"
    )


def proxy_error_response(exception: BaseException) -> Response:
    return PlainTextResponse(
        f"Proxy Error: {format_exception_message(exception)}", status_code=500
    )


async def forward_to_target(
    request: Request,
    settings: Optional[ProxySettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Response:
    """
    Forward one inbound request to the target host and relay the answer.

    Every failure before the response starts is turned into a plain-text 500;
    upstream error statuses are passed through untouched.
    """
    settings = settings or load_settings()
    client = client or get_http_client()

    with tracer.start_as_current_span("proxy_request") as span:
        span.set_attribute("proxy.method", request.method)
        upstream = None
        try:
            outbound = await build_proxy_request(request, settings, client)
            span.set_attribute("proxy.target_url", str(outbound.url))

            upstream = await client.send(outbound, stream=True)
            span.set_attribute("proxy.status_code", upstream.status_code)

            if not is_success_status(upstream.status_code):
                await log_upstream_failure(upstream)

            span.set_attribute(
                "proxy.html_rewrite",
                is_html_content(mime_type_of(upstream.headers.get("content-type"))),
            )
            return await relay_response(upstream, request, settings)

        except Exception as e:
            log_exception_with_details(
                logger,
                f"[Proxy] Proxy error for {request.method} {request.url.path}:",
                e,
            )
            span.set_attribute("proxy.error", format_exception_message(e))
            if upstream is not None:
                await upstream.aclose()
            return proxy_error_response(e)


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(request: Request, path: str):
    """Catch-all route that proxies all requests to the target host."""
    return await forward_to_target(request)
