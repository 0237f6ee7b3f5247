import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "rewrite-proxy")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8080"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "info").lower()

PROXY_TARGET_HOST = os.environ.get("PROXY_TARGET_HOST", "www.reddit.com")
PROXY_PROTOCOL = os.environ.get("PROXY_PROTOCOL", "https").lower()
PROXY_TIMEOUT_SECONDS = int(os.environ.get("PROXY_TIMEOUT_SECONDS", "30"))

DEFAULT_EXCLUDED_REQUEST_HEADERS = [
    "Host",
    "Connection",
    "Keep-Alive",
    "Proxy-Connection",
    "Transfer-Encoding",
    "Upgrade",
    "Accept-Encoding",
]
DEFAULT_EXCLUDED_RESPONSE_HEADERS = [
    "Transfer-Encoding",
    "Connection",
    "Keep-Alive",
    "Server",
]


def _parse_header_list(raw: str, default: list) -> list:
    if not raw:
        return list(default)
    return [h.strip() for h in raw.split(",") if h.strip()]


PROXY_EXCLUDED_REQUEST_HEADERS = _parse_header_list(
    os.environ.get("PROXY_EXCLUDED_REQUEST_HEADERS", ""),
    DEFAULT_EXCLUDED_REQUEST_HEADERS,
)
PROXY_EXCLUDED_RESPONSE_HEADERS = _parse_header_list(
    os.environ.get("PROXY_EXCLUDED_RESPONSE_HEADERS", ""),
    DEFAULT_EXCLUDED_RESPONSE_HEADERS,
)

PROXY_USER_AGENT = os.environ.get(
    "PROXY_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
# Development only: skips upstream certificate verification
PROXY_ALLOW_UNSAFE_CERT = (
    os.getenv("PROXY_ALLOW_UNSAFE_CERT", "false").lower() == "true"
)
PROXY_FOLLOW_REDIRECTS = (
    os.getenv("PROXY_FOLLOW_REDIRECTS", "true").lower() == "true"
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
METRICS_PATH = os.getenv("METRICS_PATH", "/_proxy/metrics")
