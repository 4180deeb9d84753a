"""Error taxonomy for the chat proxy."""

from datetime import datetime, timezone
from typing import Any

UPSTREAM_FAILURE_MESSAGE = "Upstream chat request failed"
UPSTREAM_FAILURE_SUGGESTION = "Check the network connection and that the API key is valid"


class ProxyError(Exception):
    """Base class for errors raised by the proxy."""


class ChatValidationError(ProxyError):
    """Inbound chat request is malformed; no upstream call is made."""

    status_code = 400

    def to_payload(self) -> dict[str, Any]:
        return {"error": "invalid request format", "message": str(self)}


class UpstreamError(ProxyError):
    """A forwarded chat call failed. Rendered as a structured 500 response."""

    status_code = 500

    def __init__(self, message: str, *, code: int = 500, details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": f"{type(self).__name__}: {self}",
            "details": self.details if self.details is not None else "No error details available",
            "message": UPSTREAM_FAILURE_MESSAGE,
            "code": self.code,
            "time": datetime.now(timezone.utc).isoformat(),
            "suggestion": UPSTREAM_FAILURE_SUGGESTION,
        }


class UpstreamHTTPError(UpstreamError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, details: Any = None):
        super().__init__(f"Upstream responded with status {status_code}", code=status_code, details=details)


class UpstreamUnreachableError(UpstreamError):
    """No response was received (timeout or network failure)."""


class UpstreamRequestError(UpstreamError):
    """The upstream request could not be constructed locally."""


class PortBindError(ProxyError):
    """No candidate port could be bound. Fatal during startup."""


class RegistryWriteError(ProxyError):
    """The port registry file could not be written."""
