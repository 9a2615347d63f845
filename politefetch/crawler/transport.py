"""HTTP transport shared by the direct path, robots.txt loading and the proxy client."""

from dataclasses import dataclass, field
from typing import Any

import httpx

from politefetch.crawler.user_agent import get_user_agent
from politefetch.utils.config import get_settings
from politefetch.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TransportResponse:
    """Response returned by the transport.

    ``data`` is the decoded JSON document for JSON responses and the body
    text otherwise.
    """

    status: int
    url: str
    data: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _is_json(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return "json" in content_type.lower()


def _raise_for_status(response: httpx.Response, method: str, url: str) -> None:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError:
        logger.warning(
            "Transport request returned error status",
            method=method,
            url=url,
            status=response.status_code,
        )
        raise


def _to_transport_response(response: httpx.Response, *, decode_json: bool) -> TransportResponse:
    data: Any = response.text
    if decode_json and _is_json(response):
        data = response.json()
    return TransportResponse(
        status=response.status_code,
        url=str(response.url),
        data=data,
        headers=dict(response.headers),
    )


class Transport:
    """Thin async wrapper around httpx.AsyncClient.

    Every request carries the fixed politefetch User-Agent header.
    Connection pooling, redirects and TLS are left to httpx; network
    failures propagate to the caller untouched.
    """

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self.user_agent = get_user_agent(user_agent or settings.fetcher.user_agent)
        self.timeout = timeout if timeout is not None else settings.fetcher.request_timeout
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        client.headers["User-Agent"] = self.user_agent
        self._client = client

    async def get(self, url: str, *, timeout: float | None = None) -> TransportResponse:
        """GET a URL and return its body text.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.HTTPError: On network failures.
        """
        response = await self._send("GET", url, timeout=timeout)
        _raise_for_status(response, "GET", url)
        return _to_transport_response(response, decode_json=False)

    async def get_raw(self, url: str, *, timeout: float | None = None) -> TransportResponse:
        """GET a URL without raising on the HTTP status."""
        response = await self._send("GET", url, timeout=timeout)
        return _to_transport_response(response, decode_json=False)

    async def post(
        self,
        url: str,
        body: dict[str, Any],
        *,
        timeout: float | None = None,
    ) -> TransportResponse:
        """POST a JSON body and decode the JSON answer.

        Non-2xx answers that still carry a JSON document are returned as-is,
        since JSON APIs (FlareSolverr among them) report application errors
        that way.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses without a JSON body.
            httpx.HTTPError: On network failures.
        """
        response = await self._send("POST", url, json=body, timeout=timeout)
        if response.is_error and not _is_json(response):
            _raise_for_status(response, "POST", url)
        return _to_transport_response(response, decode_json=True)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        request_timeout = httpx.Timeout(timeout) if timeout is not None else httpx.USE_CLIENT_DEFAULT
        try:
            return await self._client.request(method, url, json=json, timeout=request_timeout)
        except httpx.HTTPError as e:
            logger.warning("Transport request failed", method=method, url=url, error=str(e))
            raise

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
