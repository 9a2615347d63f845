"""
Proxy session lifecycle.

SessionCoordinator owns the single live proxy session of a process: it
creates it lazily, hands the same token to every caller until the proxy
reports it invalid, and collapses concurrent creation requests into one
sessions.create command.
"""

import asyncio

import httpx

from politefetch.crawler.errors import FetchError, SessionCreationError
from politefetch.proxy.client import ProxyClient
from politefetch.utils.logging import get_logger

logger = get_logger(__name__)


def _consume_creation_result(task: asyncio.Task[str]) -> None:
    # Marks the failure as retrieved when every waiter was cancelled
    if not task.cancelled():
        task.exception()


class SessionCoordinator:
    """Single-flight owner of the proxy session token."""

    def __init__(self, client: ProxyClient) -> None:
        self._client = client
        self._session: str | None = None
        self._creation: asyncio.Task[str] | None = None

    @property
    def session(self) -> str | None:
        """Currently cached session token, if any."""
        return self._session

    @property
    def creating(self) -> bool:
        """Whether a sessions.create command is in flight."""
        return self._creation is not None

    async def acquire_session(self) -> str:
        """Return the cached session, creating it if needed.

        Callers arriving while a creation is in flight wait for that same
        creation and share its token or its failure.

        Raises:
            SessionCreationError: If the proxy rejects session creation.
        """
        if self._session is not None:
            return self._session

        if self._creation is None:
            self._creation = asyncio.ensure_future(self._create_session())
            self._creation.add_done_callback(_consume_creation_result)

        # Shielded so that one cancelled caller does not abort the shared creation
        return await asyncio.shield(self._creation)

    def invalidate_session(self) -> None:
        """Forget the cached session token."""
        if self._session is not None:
            logger.debug("Invalidating proxy session", session=self._session)
        self._session = None

    async def close(self) -> None:
        """Destroy the cached session on the proxy side.

        Failures are logged and not raised: this runs on shutdown.
        """
        if self._creation is not None:
            try:
                await asyncio.shield(self._creation)
            except (httpx.HTTPError, FetchError) as e:
                logger.debug("Pending session creation failed during close", error=str(e))

        session = self._session
        if session is None:
            return
        self._session = None

        try:
            response = await self._client.destroy_session(session)
        except (httpx.HTTPError, FetchError) as e:
            logger.warning("Failed to destroy proxy session", session=session, error=str(e))
            return

        if response.is_error:
            logger.warning(
                "Proxy refused to destroy session",
                session=session,
                message=response.message,
            )
        else:
            logger.debug("Destroyed proxy session", session=session)

    async def _create_session(self) -> str:
        try:
            logger.debug("Creating new proxy session")
            response = await self._client.create_session()

            if response.is_error:
                logger.error("Proxy session creation failed", message=response.message)
                raise SessionCreationError(response.message)

            if not response.session:
                logger.error("Proxy session creation returned no session id")
                raise SessionCreationError("no session id in response")

            self._session = response.session
            logger.debug("Created proxy session", session=self._session)
            return self._session
        finally:
            self._creation = None
