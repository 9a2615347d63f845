"""
FlareSolverr-compatible proxy client.

Every command is a JSON document posted to the proxy endpoint:

  {"cmd": "sessions.create"}
  {"cmd": "sessions.destroy", "session": "..."}
  {"cmd": "request.get", "url": "...", "session": "...", "maxTimeout": 60000}

and every answer carries ``status`` ("ok" or "error") plus an optional
``message``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from politefetch.crawler.errors import ProxyProtocolError
from politefetch.crawler.transport import Transport
from politefetch.utils.config import get_settings
from politefetch.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_OK = "ok"
STATUS_ERROR = "error"


class ProxySolution(BaseModel):
    """Solution block of a request.get answer."""

    model_config = ConfigDict(extra="allow")

    url: str | None = None
    status: int | None = None
    response: str | None = None


class ProxyResponse(BaseModel):
    """Answer to any proxy command."""

    model_config = ConfigDict(extra="allow")

    status: str | None = None
    message: str | None = None
    session: str | None = None
    solution: ProxySolution | None = None

    @property
    def is_error(self) -> bool:
        return self.status == STATUS_ERROR

    @property
    def is_session_error(self) -> bool:
        """Whether the proxy complains about the session it was given."""
        return self.is_error and "session" in (self.message or "")

    @property
    def page(self) -> str | None:
        """Rendered page body, if the answer carries one."""
        if self.solution is None or not self.solution.response:
            return None
        return self.solution.response


class ProxyClient:
    """Issues FlareSolverr commands over the shared transport."""

    def __init__(
        self,
        transport: Transport,
        endpoint: str,
        *,
        max_timeout_ms: int | None = None,
        request_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._transport = transport
        self.endpoint = endpoint
        self.max_timeout_ms = (
            max_timeout_ms if max_timeout_ms is not None else settings.proxy.max_timeout_ms
        )
        self._request_timeout = (
            request_timeout if request_timeout is not None else settings.proxy.request_timeout
        )

    async def create_session(self) -> ProxyResponse:
        return await self._command({"cmd": "sessions.create"})

    async def destroy_session(self, session: str) -> ProxyResponse:
        return await self._command({"cmd": "sessions.destroy", "session": session})

    async def request_get(self, url: str, session: str | None = None) -> ProxyResponse:
        """Ask the proxy to render ``url``, optionally inside ``session``."""
        body: dict[str, Any] = {"cmd": "request.get", "url": url}
        if session is not None:
            body["session"] = session
        body["maxTimeout"] = self.max_timeout_ms
        return await self._command(body, url=url)

    async def _command(self, body: dict[str, Any], *, url: str | None = None) -> ProxyResponse:
        response = await self._transport.post(
            self.endpoint,
            body,
            timeout=self._request_timeout,
        )

        if not isinstance(response.data, dict):
            logger.error(
                "Proxy answered with a non-JSON document",
                cmd=body["cmd"],
                url=url,
                status=response.status,
            )
            raise ProxyProtocolError(url=url, details={"cmd": body["cmd"], "status": response.status})

        try:
            return ProxyResponse.model_validate(response.data)
        except ValidationError as e:
            logger.error("Proxy answer failed validation", cmd=body["cmd"], url=url, error=str(e))
            raise ProxyProtocolError(url=url, details={"cmd": body["cmd"]}) from e
