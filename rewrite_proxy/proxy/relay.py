import logging
from typing import AsyncIterator

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

from rewrite_proxy.content.html_rewriter import rewrite_html
from rewrite_proxy.proxy.errors import InvalidHeaderError
from rewrite_proxy.proxy.forwarder import validate_header
from rewrite_proxy.proxy.media_type import is_html_content, mime_type_of
from rewrite_proxy.proxy.settings import ProxySettings
from rewrite_proxy.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

# Not valid any more once the body has been decoded
DECODED_BODY_HEADERS = {"content-length", "content-encoding"}
REWRITTEN_BODY_HEADERS = DECODED_BODY_HEADERS | {"content-type"}


def get_proxy_host(request: Request) -> str:
    return request.headers.get("host") or request.url.netloc


def copy_response_headers(
    upstream: httpx.Response, response: Response, settings: ProxySettings, skip=()
) -> None:
    """Append every non-excluded upstream header to the client response."""
    for name, value in upstream.headers.multi_items():
        name_lower = name.lower()
        if settings.is_response_header_excluded(name) or name_lower in skip:
            continue
        try:
            validate_header(name, value)
            response.headers.append(name, value)
        except (InvalidHeaderError, UnicodeEncodeError) as e:
            logger.warning(f"Failed to copy response header {name}: {e}")


async def stream_upstream_body(
    upstream: httpx.Response, request: Request
) -> AsyncIterator[bytes]:
    """
    Relay the raw upstream bytes.

    Headers are already on the wire once the first chunk is requested, so a
    failure here can only be logged and the body cut short.
    """
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except Exception as e:
        log_exception_with_details(
            logger,
            f"[Proxy] Streaming aborted for {request.method} {request.url.path}:",
            e,
            level=logging.WARNING,
        )


async def relay_response(
    upstream: httpx.Response, request: Request, settings: ProxySettings
) -> Response:
    content_type = upstream.headers.get("content-type")
    mime_type = mime_type_of(content_type)
    logger.debug(f"Handling proxy response: {upstream.status_code} {mime_type}")

    if is_html_content(mime_type):
        try:
            await upstream.aread()
            content = rewrite_html(
                upstream.text,
                settings.target_host,
                get_proxy_host(request),
                request.url.scheme,
            )
        finally:
            await upstream.aclose()

        response = Response(
            content=content.encode("utf-8"),
            status_code=upstream.status_code,
            media_type=f"{mime_type}; charset=utf-8",
        )
        copy_response_headers(
            upstream, response, settings, skip=REWRITTEN_BODY_HEADERS
        )
        return response

    if upstream.is_stream_consumed:
        # Body was already read for diagnostics, httpx only keeps the decoded bytes
        response = Response(content=upstream.content, status_code=upstream.status_code)
        copy_response_headers(upstream, response, settings, skip=DECODED_BODY_HEADERS)
        return response

    response = StreamingResponse(
        stream_upstream_body(upstream, request),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    copy_response_headers(upstream, response, settings)
    return response
