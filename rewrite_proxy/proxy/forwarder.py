import logging
import re
from typing import List, Tuple

import httpx
from fastapi import Request

from rewrite_proxy.proxy.errors import InvalidHeaderError, MediaTypeError
from rewrite_proxy.proxy.media_type import parse_media_type
from rewrite_proxy.proxy.settings import ProxySettings

logger = logging.getLogger("uvicorn.error")

# Body headers are derived from the buffered body, never copied
BODY_HEADERS = {"content-type", "content-length"}

_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def get_target_url(request: Request, settings: ProxySettings) -> str:
    """Construct the upstream URL from the configured host and the request path."""
    path = request.url.path or "/"
    query_string = str(request.url.query)
    if query_string:
        path = f"{path}?{query_string}"
    return f"{settings.base_url}{path}"


def validate_header(name: str, value: str) -> Tuple[str, str]:
    """Return the header unchanged or raise InvalidHeaderError."""
    if not name or not _HEADER_NAME_RE.match(name):
        raise InvalidHeaderError(name, "name is not a valid token")
    if "\r" in value or "\n" in value or "\x00" in value:
        raise InvalidHeaderError(name, "value contains control characters")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as e:
        raise InvalidHeaderError(name, "value is not latin-1 encodable") from e
    return name, value


def prepare_headers(request: Request, settings: ProxySettings) -> List[Tuple[str, str]]:
    """
    Headers for the upstream request.

    Excluded names and the body headers are dropped, repeated headers are kept,
    and Host is always the target host.
    """
    headers = [("Host", settings.target_host)]

    for name, value in request.headers.items():
        if settings.is_request_header_excluded(name) or name.lower() in BODY_HEADERS:
            continue
        try:
            headers.append(validate_header(name, value))
        except InvalidHeaderError as e:
            logger.warning(f"Failed to copy header {name}: {e.reason}")

    return headers


async def build_proxy_request(
    request: Request, settings: ProxySettings, client: httpx.AsyncClient
) -> httpx.Request:
    target_url = get_target_url(request, settings)
    logger.debug(f"Creating proxy request: {request.method} {target_url}")

    headers = prepare_headers(request, settings)
    content = None

    content_type = request.headers.get("content-type", "")
    content_length = request.headers.get("content-length", "")
    if _declares_body(content_length, content_type):
        logger.debug(
            f"Processing request body, ContentLength: {content_length or None}, "
            f"ContentType: {content_type or None}"
        )
        content = await request.body()

        if content_type:
            try:
                headers.append(("Content-Type", str(parse_media_type(content_type))))
            except MediaTypeError as e:
                logger.warning(
                    f"Failed to parse Content-Type '{content_type}': {e.reason}"
                )

    outbound = client.build_request(
        method=request.method,
        url=target_url,
        headers=headers,
        content=content,
    )
    strip_client_defaults(outbound, settings)
    return outbound


def strip_client_defaults(outbound: httpx.Request, settings: ProxySettings) -> None:
    """Drop excluded headers that httpx merged in from the client defaults.

    Host and the body headers are set by us and stay.
    """
    for name in list(outbound.headers.keys()):
        name_lower = name.lower()
        if name_lower == "host" or name_lower in BODY_HEADERS:
            continue
        if settings.is_request_header_excluded(name_lower):
            del outbound.headers[name]


def _declares_body(content_length: str, content_type: str) -> bool:
    if content_type:
        return True
    try:
        return int(content_length) > 0
    except ValueError:
        return False
