"""
politefetch Crawler Module.

Provides URL fetching, robots.txt compliance and the HTTP transport.
"""

from politefetch.crawler.errors import (
    FetchError,
    PermissionLoadError,
    ProxyError,
    ProxyProtocolError,
    RobotsDisallowedError,
    SessionCreationError,
)
from politefetch.crawler.fetcher import (
    Fetcher,
    PermissionOracle,
    close_fetcher,
    fetch,
    get_fetcher,
)
from politefetch.crawler.robots import (
    RobotsGuard,
    RobotsRule,
    parse_robots_txt,
)
from politefetch.crawler.transport import (
    Transport,
    TransportResponse,
)

__all__ = [
    # Fetcher
    "Fetcher",
    "PermissionOracle",
    "fetch",
    "get_fetcher",
    "close_fetcher",
    # Errors
    "FetchError",
    "SessionCreationError",
    "ProxyError",
    "ProxyProtocolError",
    "RobotsDisallowedError",
    "PermissionLoadError",
    # Robots
    "RobotsGuard",
    "RobotsRule",
    "parse_robots_txt",
    # Transport
    "Transport",
    "TransportResponse",
]
