"""Fetch errors raised to callers of the fetch layer."""

from typing import Any


class FetchError(Exception):
    """Base exception for fetch operations.

    Carries the offending URL and, where available, the message reported
    by the challenge-solving proxy.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: str = "fetch_failed",
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.url = url
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a log/response friendly dictionary."""
        result: dict[str, Any] = {
            "ok": False,
            "error_type": self.error_type,
            "error": self.message,
        }
        if self.url:
            result["url"] = self.url
        if self.details:
            result["details"] = self.details
        return result


class SessionCreationError(FetchError):
    """Raised when the proxy rejects a sessions.create command."""

    def __init__(self, proxy_message: str | None, *, url: str | None = None):
        super().__init__(
            f"Failed to create proxy session: {proxy_message}",
            error_type="session_creation_failed",
            url=url,
        )
        self.proxy_message = proxy_message


class ProxyError(FetchError):
    """Raised when the proxy reports an error for a request.get command."""

    def __init__(self, proxy_message: str | None, *, url: str | None = None):
        super().__init__(
            f"Proxy error: {proxy_message}",
            error_type="proxy_error",
            url=url,
        )
        self.proxy_message = proxy_message


class ProxyProtocolError(FetchError):
    """Raised when the proxy reports success but the solution payload is missing."""

    def __init__(self, *, url: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            "Proxy returned invalid response",
            error_type="proxy_protocol_error",
            url=url,
            details=details,
        )


class RobotsDisallowedError(FetchError):
    """Raised when robots.txt forbids fetching the URL."""

    def __init__(self, url: str, *, rule: str | None = None):
        super().__init__(
            "Disallowed URL according to robots.txt",
            error_type="robots_disallowed",
            url=url,
            details={"rule": rule} if rule else {},
        )
        self.rule = rule


class PermissionLoadError(FetchError):
    """Raised when robots.txt could not be loaded."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
    ):
        super().__init__(
            message,
            error_type="permission_load_failed",
            url=url,
            details={"status": status} if status is not None else {},
        )
        self.status = status
