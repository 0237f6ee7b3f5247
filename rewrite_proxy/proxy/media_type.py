"""Content-Type parsing.

Only the RFC 9110 ``type/subtype *(; name=value)`` grammar is accepted;
anything else raises :class:`MediaTypeError` so callers can decide whether
to drop the header.
"""

import re
from typing import NamedTuple, Optional, Tuple

from rewrite_proxy.proxy.errors import MediaTypeError

_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MIME_RE = re.compile(rf"^({_TOKEN})/({_TOKEN})$")
_TOKEN_RE = re.compile(rf"^{_TOKEN}$")
_PARAM_RE = re.compile(rf'\s*({_TOKEN})\s*=\s*({_TOKEN}|"(?:[^"\\]|\\.)*")\s*$')


class MediaType(NamedTuple):
    mime_type: str
    params: Tuple[Tuple[str, str], ...] = ()

    @property
    def charset(self) -> Optional[str]:
        for name, value in self.params:
            if name == "charset":
                return value
        return None

    def __str__(self) -> str:
        parts = [self.mime_type]
        for name, value in self.params:
            if not _TOKEN_RE.match(value):
                value = '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
            parts.append(f"{name}={value}")
        return "; ".join(parts)


def _split_params(raw: str) -> list:
    """Split on ``;`` outside quoted strings."""
    segments = []
    current = []
    quoted = False
    escaped = False
    for ch in raw:
        if escaped:
            escaped = False
        elif ch == "\\" and quoted:
            escaped = True
        elif ch == '"':
            quoted = not quoted
        elif ch == ";" and not quoted:
            segments.append("".join(current))
            current = []
            continue
        current.append(ch)
    if quoted:
        raise ValueError("unterminated quoted string")
    segments.append("".join(current))
    return segments


def parse_media_type(value: str) -> MediaType:
    if value is None or not value.strip():
        raise MediaTypeError(str(value), "empty value")

    try:
        segments = _split_params(value)
    except ValueError as e:
        raise MediaTypeError(value, str(e)) from e

    match = _MIME_RE.match(segments[0].strip())
    if not match:
        raise MediaTypeError(value, "expected 'type/subtype'")
    mime_type = f"{match.group(1)}/{match.group(2)}".lower()

    params = []
    for segment in segments[1:]:
        if not segment.strip():
            continue
        param = _PARAM_RE.match(segment)
        if not param:
            raise MediaTypeError(value, f"malformed parameter '{segment.strip()}'")
        name, raw_value = param.group(1).lower(), param.group(2)
        if raw_value.startswith('"'):
            raw_value = re.sub(r"\\(.)", r"\1", raw_value[1:-1])
        params.append((name, raw_value))

    return MediaType(mime_type, tuple(params))


def mime_type_of(content_type: Optional[str]) -> Optional[str]:
    """Return the lower-cased ``type/subtype`` or None when absent or invalid."""
    if not content_type:
        return None
    try:
        return parse_media_type(content_type).mime_type
    except MediaTypeError:
        return None


def is_html_content(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    mime_type = mime_type.lower()
    return mime_type == "text/html" or mime_type.endswith("+html")
