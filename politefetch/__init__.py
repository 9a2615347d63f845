"""
politefetch: polite, policy-aware async page fetching.

Pages are fetched either through a challenge-solving proxy with a shared
session, or directly after a robots.txt check.
"""

__version__ = "0.1.0"

from politefetch.crawler import (  # noqa: E402
    FetchError,
    Fetcher,
    PermissionLoadError,
    ProxyError,
    ProxyProtocolError,
    RobotsDisallowedError,
    SessionCreationError,
    close_fetcher,
    fetch,
    get_fetcher,
)

__all__ = [
    "__version__",
    "Fetcher",
    "fetch",
    "get_fetcher",
    "close_fetcher",
    "FetchError",
    "SessionCreationError",
    "ProxyError",
    "ProxyProtocolError",
    "RobotsDisallowedError",
    "PermissionLoadError",
]
