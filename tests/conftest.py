"""
Pytest fixtures and configuration for politefetch tests.

Markers:
- @pytest.mark.unit: Single class/function, no external dependencies.
  Tests without marker are auto-classified as unit.
- @pytest.mark.integration: Several components wired together, network mocked.

Mock Strategy:
- Network: prohibited. Proxy commands are answered by ScriptedProxyTransport,
  plain HTTP by httpx.MockTransport.
- Settings: the global settings cache is cleared around every test.
"""

import asyncio
import os
from pathlib import Path
from typing import Any

import pytest

# Set test environment before importing anything else
os.environ["POLITEFETCH_CONFIG_DIR"] = str(Path(__file__).parent / "no-config")
os.environ.pop("FLARESOLVERR_URL", None)

from politefetch.crawler.transport import TransportResponse  # noqa: E402

PROXY_ENDPOINT = "http://flaresolverr.test:8191/v1"


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line("markers", "unit: Unit tests with no external dependencies")
    config.addinivalue_line(
        "markers", "integration: Integration tests with mocked external dependencies"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-classify unmarked tests as unit tests."""
    for item in items:
        if not any(item.iter_markers(name="integration")):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Clear cached settings so env changes made by a test do not leak."""
    from politefetch.utils.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_global_fetcher():
    """Forget the global fetcher between tests."""
    yield
    from politefetch.crawler import fetcher as fetcher_module

    fetcher_module._fetcher = None


@pytest.fixture
def mock_settings():
    """Create settings for testing."""
    from politefetch.utils.config import (
        FetcherConfig,
        GeneralConfig,
        ProxyConfig,
        RobotsConfig,
        Settings,
    )

    return Settings(
        general=GeneralConfig(log_level="DEBUG", json_logs=False),
        fetcher=FetcherConfig(request_timeout=5.0),
        proxy=ProxyConfig(endpoint=PROXY_ENDPOINT),
        robots=RobotsConfig(base_url="https://example.com"),
    )


class ScriptedProxyTransport:
    """Transport double answering proxy commands from per-command scripts.

    Each command name maps to a list of answers consumed in order; the last
    answer repeats once the list is exhausted. Every posted body is recorded.
    A creation gate, when set, holds sessions.create until released so tests
    can pile up concurrent callers.
    """

    def __init__(self, answers: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.answers: dict[str, list[dict[str, Any]]] = answers or {}
        self.posts: list[dict[str, Any]] = []
        self.gets: list[str] = []
        self.creation_gate: asyncio.Event | None = None
        self.closed = False

    def commands(self, cmd: str) -> list[dict[str, Any]]:
        return [body for body in self.posts if body["cmd"] == cmd]

    async def post(
        self,
        url: str,
        body: dict[str, Any],
        *,
        timeout: float | None = None,
    ) -> TransportResponse:
        self.posts.append(body)
        if body["cmd"] == "sessions.create" and self.creation_gate is not None:
            await self.creation_gate.wait()
        await asyncio.sleep(0)

        script = self.answers[body["cmd"]]
        data = script.pop(0) if len(script) > 1 else script[0]
        return TransportResponse(status=200, url=url, data=data)

    async def get(self, url: str, *, timeout: float | None = None) -> TransportResponse:
        self.gets.append(url)
        return TransportResponse(status=200, url=url, data=f"<html>{url}</html>")

    async def get_raw(self, url: str, *, timeout: float | None = None) -> TransportResponse:
        return await self.get(url, timeout=timeout)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def proxy_transport() -> ScriptedProxyTransport:
    """Proxy transport with one session and a working request.get."""
    return ScriptedProxyTransport(
        {
            "sessions.create": [{"status": "ok", "session": "session-1"}],
            "sessions.destroy": [{"status": "ok", "message": "The session has been removed."}],
            "request.get": [{"status": "ok", "solution": {"response": "<html>ok</html>"}}],
        }
    )


class FakeRobots:
    """Permission oracle double counting load() and is_allowed() calls."""

    def __init__(self, disallowed: set[str] | None = None, *, fail_loads: int = 0) -> None:
        self.disallowed = disallowed or set()
        self.fail_loads = fail_loads
        self.is_loaded = False
        self.bound_to: str | None = None
        self.load_calls = 0
        self.allow_calls = 0

    def bind(self, url: str) -> None:
        self.bound_to = self.bound_to or url

    async def load(self) -> None:
        from politefetch.crawler.errors import PermissionLoadError

        self.load_calls += 1
        await asyncio.sleep(0)
        if self.fail_loads:
            self.fail_loads -= 1
            raise PermissionLoadError("robots.txt fetch failed with status 503", status=503)
        self.is_loaded = True

    def is_allowed(self, url: str) -> bool:
        self.allow_calls += 1
        return url not in self.disallowed


@pytest.fixture
def fake_robots() -> FakeRobots:
    return FakeRobots({"http://example.com/private"})


@pytest.fixture
def make_proxy_transport() -> type[ScriptedProxyTransport]:
    """Factory for proxy transports with custom scripts."""
    return ScriptedProxyTransport


@pytest.fixture
def make_robots() -> type[FakeRobots]:
    """Factory for permission oracles with custom rules."""
    return FakeRobots
