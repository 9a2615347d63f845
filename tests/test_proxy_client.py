"""
Tests for the FlareSolverr proxy client.

Covers:
- Command bodies for sessions.create / sessions.destroy / request.get
- ProxyResponse helpers (error, session error, page)
- Protocol violations (non-JSON answers)
"""

import pytest

from politefetch.crawler.errors import ProxyProtocolError
from politefetch.crawler.transport import TransportResponse
from politefetch.proxy.client import ProxyClient, ProxyResponse

pytestmark = pytest.mark.unit

ENDPOINT = "http://flaresolverr.test:8191/v1"


class TestProxyResponse:
    """Tests for ProxyResponse."""

    def test_page_from_solution(self):
        response = ProxyResponse.model_validate(
            {
                "status": "ok",
                "message": "Challenge not detected!",
                "solution": {"url": "https://example.com/", "status": 200, "response": "<html/>"},
                "startTimestamp": 1700000000000,
            }
        )

        assert not response.is_error
        assert response.page == "<html/>"

    def test_empty_response_is_no_page(self):
        response = ProxyResponse.model_validate({"status": "ok", "solution": {"response": ""}})

        assert response.page is None

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Error: invalid session", True),
            ("This session does not exist.", True),
            ("Cloudflare has blocked this request.", False),
            (None, False),
        ],
    )
    def test_session_error_detection(self, message, expected):
        response = ProxyResponse(status="error", message=message)

        assert response.is_session_error is expected

    def test_ok_status_is_never_a_session_error(self):
        response = ProxyResponse(status="ok", message="session created")

        assert not response.is_session_error


class TestProxyClient:
    """Tests for ProxyClient command encoding."""

    @pytest.mark.asyncio
    async def test_request_get_body(self, proxy_transport):
        client = ProxyClient(proxy_transport, ENDPOINT)

        response = await client.request_get("https://example.com/", "session-1")

        assert response.page == "<html>ok</html>"
        assert proxy_transport.posts == [
            {
                "cmd": "request.get",
                "url": "https://example.com/",
                "session": "session-1",
                "maxTimeout": 60000,
            }
        ]

    @pytest.mark.asyncio
    async def test_request_get_without_session_and_custom_timeout(self, proxy_transport):
        client = ProxyClient(proxy_transport, ENDPOINT, max_timeout_ms=30000)

        await client.request_get("https://example.com/")

        assert proxy_transport.posts == [
            {"cmd": "request.get", "url": "https://example.com/", "maxTimeout": 30000}
        ]

    @pytest.mark.asyncio
    async def test_session_commands(self, proxy_transport):
        client = ProxyClient(proxy_transport, ENDPOINT)

        created = await client.create_session()
        await client.destroy_session(created.session)

        assert created.session == "session-1"
        assert proxy_transport.posts == [
            {"cmd": "sessions.create"},
            {"cmd": "sessions.destroy", "session": "session-1"},
        ]

    @pytest.mark.asyncio
    async def test_non_json_answer_is_protocol_error(self):
        class HtmlTransport:
            async def post(self, url, body, *, timeout=None):
                return TransportResponse(status=200, url=url, data="<html>not json</html>")

        client = ProxyClient(HtmlTransport(), ENDPOINT)

        with pytest.raises(ProxyProtocolError) as exc_info:
            await client.request_get("https://example.com/")

        assert exc_info.value.url == "https://example.com/"
