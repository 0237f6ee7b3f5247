from .errors import ProxyError, InvalidHeaderError, MediaTypeError
from .settings import ProxySettings, load_settings

__all__ = [
    "ProxyError",
    "InvalidHeaderError",
    "MediaTypeError",
    "ProxySettings",
    "load_settings",
]
