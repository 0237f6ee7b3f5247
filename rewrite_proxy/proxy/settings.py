from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Iterable

from rewrite_proxy import vars as proxy_vars


def _lower_set(names: Iterable[str]) -> FrozenSet[str]:
    return frozenset(name.strip().lower() for name in names if name.strip())


@dataclass(frozen=True)
class ProxySettings:
    """Static, process-wide proxy configuration.

    Header names are stored lower-cased so membership checks are
    case-insensitive.
    """

    target_host: str = "www.reddit.com"
    protocol: str = "https"
    timeout_seconds: int = 30
    excluded_request_headers: FrozenSet[str] = field(
        default_factory=lambda: _lower_set(proxy_vars.DEFAULT_EXCLUDED_REQUEST_HEADERS)
    )
    excluded_response_headers: FrozenSet[str] = field(
        default_factory=lambda: _lower_set(
            proxy_vars.DEFAULT_EXCLUDED_RESPONSE_HEADERS
        )
    )
    user_agent: str = ""
    allow_unsafe_cert: bool = False
    follow_redirects: bool = True

    def __post_init__(self):
        # normalise whatever iterable the caller handed in
        object.__setattr__(
            self, "excluded_request_headers", _lower_set(self.excluded_request_headers)
        )
        object.__setattr__(
            self,
            "excluded_response_headers",
            _lower_set(self.excluded_response_headers),
        )

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.target_host}"

    def is_request_header_excluded(self, name: str) -> bool:
        return name.lower() in self.excluded_request_headers

    def is_response_header_excluded(self, name: str) -> bool:
        return name.lower() in self.excluded_response_headers


@lru_cache(maxsize=1)
def load_settings() -> ProxySettings:
    """Build the process settings from the environment-backed constants."""
    return ProxySettings(
        target_host=proxy_vars.PROXY_TARGET_HOST,
        protocol=proxy_vars.PROXY_PROTOCOL,
        timeout_seconds=proxy_vars.PROXY_TIMEOUT_SECONDS,
        excluded_request_headers=proxy_vars.PROXY_EXCLUDED_REQUEST_HEADERS,
        excluded_response_headers=proxy_vars.PROXY_EXCLUDED_RESPONSE_HEADERS,
        user_agent=proxy_vars.PROXY_USER_AGENT,
        allow_unsafe_cert=proxy_vars.PROXY_ALLOW_UNSAFE_CERT,
        follow_redirects=proxy_vars.PROXY_FOLLOW_REDIRECTS,
    )
