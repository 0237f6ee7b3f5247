class ProxyError(Exception):
    """Base class for failures raised while proxying a request."""


class InvalidHeaderError(ProxyError):
    """A header name or value that cannot be put on the wire."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid header '{name}': {reason}")
        self.name = name
        self.reason = reason


class MediaTypeError(ProxyError):
    """A Content-Type value that does not parse as ``type/subtype; params``."""

    def __init__(self, value: str, reason: str):
        super().__init__(f"Invalid media type '{value}': {reason}")
        self.value = value
        self.reason = reason
