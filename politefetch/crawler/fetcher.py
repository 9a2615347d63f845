"""
URL fetcher for politefetch.

Fetches a page either through a challenge-solving proxy (FlareSolverr API)
or directly after checking robots.txt. The route is chosen once, from
settings, when the fetcher is built:

- Proxy route: the proxy session is shared across fetches; a request the
  proxy rejects because of its session is retried once with a new session.
  robots.txt is not consulted, the proxy applies its own access policy.
- Direct route: robots.txt is loaded on the first fetch and every URL is
  checked against it before the GET is issued.
"""

import asyncio
from typing import Protocol

import httpx

from politefetch.crawler.errors import (
    PermissionLoadError,
    ProxyError,
    ProxyProtocolError,
    RobotsDisallowedError,
    SessionCreationError,
)
from politefetch.crawler.robots import RobotsGuard
from politefetch.crawler.transport import Transport
from politefetch.proxy.client import ProxyClient, ProxyResponse
from politefetch.proxy.session import SessionCoordinator
from politefetch.utils.config import (
    FetchRoute,
    ProxySessionMode,
    Settings,
    get_settings,
    resolve_fetch_route,
)
from politefetch.utils.logging import LogContext, ensure_logging_configured, get_logger

logger = get_logger(__name__)


class PermissionOracle(Protocol):
    """Crawl permission source consulted on the direct route."""

    @property
    def is_loaded(self) -> bool: ...

    def bind(self, url: str) -> None: ...

    async def load(self) -> None: ...

    def is_allowed(self, url: str) -> bool: ...


class Fetcher:
    """Dispatches fetches to the proxy or the direct route."""

    def __init__(
        self,
        route: FetchRoute,
        *,
        transport: Transport | None = None,
        robots: PermissionOracle | None = None,
        proxy_client: ProxyClient | None = None,
        sessions: SessionCoordinator | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.route = route
        self._transport = transport or Transport(
            user_agent=settings.fetcher.user_agent,
            timeout=settings.fetcher.request_timeout,
        )
        self._robots_lock = asyncio.Lock()

        self._robots: PermissionOracle | None = None
        self._proxy: ProxyClient | None = None
        self._sessions: SessionCoordinator | None = None

        if route.uses_proxy:
            if route.endpoint is None:
                raise ValueError("Proxy route requires an endpoint")
            self._proxy = proxy_client or ProxyClient(
                self._transport,
                route.endpoint,
                max_timeout_ms=settings.proxy.max_timeout_ms,
                request_timeout=settings.proxy.request_timeout,
            )
            if route.session_mode == ProxySessionMode.REUSE:
                self._sessions = sessions or SessionCoordinator(self._proxy)
        else:
            self._robots = robots or RobotsGuard(
                self._transport,
                base_url=settings.robots.base_url,
                agent_token=settings.robots.agent_token,
                fetch_timeout=settings.robots.fetch_timeout,
            )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Fetcher":
        """Build a fetcher for the route configured in settings."""
        settings = settings or get_settings()
        return cls(resolve_fetch_route(settings), settings=settings)

    async def fetch(self, url: str) -> str:
        """Fetch a URL and return the page body.

        Args:
            url: URL to fetch.

        Returns:
            Page body as text.

        Raises:
            SessionCreationError: The proxy refused to create a session.
            ProxyError: The proxy reported an error for the request.
            ProxyProtocolError: The proxy answer carried no page.
            PermissionLoadError: robots.txt could not be loaded.
            RobotsDisallowedError: robots.txt forbids the URL.
            httpx.HTTPError: Transport failures, untouched.
        """
        with LogContext(route=self.route.kind.value):
            if self.route.uses_proxy:
                return await self._fetch_via_proxy(url)
            return await self._fetch_direct(url)

    async def close(self) -> None:
        """Destroy the proxy session, if any, and release the transport."""
        if self._sessions is not None:
            await self._sessions.close()
        await self._transport.close()

    # -------------------------------------------------------------------------
    # Proxy route
    # -------------------------------------------------------------------------

    async def _fetch_via_proxy(self, url: str) -> str:
        assert self._proxy is not None

        session = await self._acquire_session(url)
        if session is not None:
            logger.debug("Using proxy session", session=session, url=url)

        response = await self._proxy.request_get(url, session)

        if self._sessions is not None and response.is_session_error:
            logger.info("Proxy session expired, recreating", url=url, message=response.message)
            self._sessions.invalidate_session()
            session = await self._acquire_session(url)
            response = await self._proxy.request_get(url, session)

        return self._extract_page(url, response)

    async def _acquire_session(self, url: str) -> str | None:
        if self._sessions is None:
            return None
        try:
            return await self._sessions.acquire_session()
        except SessionCreationError as e:
            logger.error("Proxy session unavailable", url=url, message=e.proxy_message)
            raise SessionCreationError(e.proxy_message, url=url) from e

    @staticmethod
    def _extract_page(url: str, response: ProxyResponse) -> str:
        if response.is_error:
            logger.error("Proxy error", url=url, message=response.message)
            raise ProxyError(response.message, url=url)

        page = response.page
        if page is None:
            logger.error("Proxy returned invalid response", url=url, status=response.status)
            raise ProxyProtocolError(url=url, details={"status": response.status})

        logger.debug("Proxy fetch success", url=url, content_length=len(page))
        return page

    # -------------------------------------------------------------------------
    # Direct route
    # -------------------------------------------------------------------------

    async def _fetch_direct(self, url: str) -> str:
        assert self._robots is not None

        await self._ensure_robots_loaded(url)

        if not self._robots.is_allowed(url):
            logger.error("Tried accessing robots.txt disallowed URL", url=url)
            rule = None
            if isinstance(self._robots, RobotsGuard):
                rule = self._robots.blocking_rule(url)
            raise RobotsDisallowedError(url, rule=rule)

        response = await self._transport.get(url)
        logger.debug("Direct fetch success", url=url, status=response.status)
        return response.data

    async def _ensure_robots_loaded(self, url: str) -> None:
        assert self._robots is not None

        async with self._robots_lock:
            if self._robots.is_loaded:
                return

            self._robots.bind(url)
            try:
                await self._robots.load()
            except PermissionLoadError as e:
                logger.error("robots.txt unavailable", url=url, error=e.message)
                raise
            except httpx.HTTPError as e:
                logger.error("robots.txt unavailable", url=url, error=str(e))
                raise PermissionLoadError(f"Failed to load robots.txt: {e}", url=url) from e


# Global fetcher instance
_fetcher: Fetcher | None = None


def get_fetcher() -> Fetcher:
    """Get the global fetcher instance.

    Returns:
        Fetcher built from settings.
    """
    global _fetcher
    if _fetcher is None:
        ensure_logging_configured()
        _fetcher = Fetcher.from_settings()
    return _fetcher


async def fetch(url: str) -> str:
    """Fetch a URL with the global fetcher.

    Args:
        url: URL to fetch.

    Returns:
        Page body as text.
    """
    return await get_fetcher().fetch(url)


async def close_fetcher() -> None:
    """Close and forget the global fetcher."""
    global _fetcher
    if _fetcher is not None:
        fetcher = _fetcher
        _fetcher = None
        await fetcher.close()
