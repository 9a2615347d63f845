"""
politefetch utilities module.
"""

from politefetch.utils.config import (
    FetchRoute,
    FetchRouteKind,
    ProxySessionMode,
    Settings,
    get_settings,
    resolve_fetch_route,
)
from politefetch.utils.logging import (
    LogContext,
    bind_context,
    configure_logging,
    ensure_logging_configured,
    get_logger,
    unbind_context,
)

__all__ = [
    "FetchRoute",
    "FetchRouteKind",
    "ProxySessionMode",
    "Settings",
    "get_settings",
    "resolve_fetch_route",
    "LogContext",
    "bind_context",
    "configure_logging",
    "ensure_logging_configured",
    "get_logger",
    "unbind_context",
]
