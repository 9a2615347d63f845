"""
robots.txt compliance guard for politefetch.

The guard is bound to a single site origin. Its policy document is fetched
lazily, at most once per process, and then answers allow/deny queries
without further network traffic.

References:
- https://www.rfc-editor.org/rfc/rfc9309.html (Robots Exclusion Protocol)
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import urlparse

import httpx

from politefetch.crawler.errors import PermissionLoadError
from politefetch.crawler.transport import Transport
from politefetch.utils.config import get_settings
from politefetch.utils.logging import get_logger

logger = get_logger(__name__)

# Statuses meaning "no robots.txt here": everything is allowed.
_MISSING_STATUSES = (404, 410)


def get_origin(url: str) -> str:
    """Return scheme://host[:port] for a URL."""
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


@dataclass
class RobotsRule:
    """Parsed robots.txt rules for one origin."""

    origin: str
    allowed_paths: list[str] = field(default_factory=list)
    disallowed_paths: list[str] = field(default_factory=list)
    crawl_delay: float | None = None
    sitemap_urls: list[str] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class _Group:
    agents: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)
    crawl_delay: float | None = None


def parse_robots_txt(origin: str, content: str, agent_token: str) -> RobotsRule:
    """Parse robots.txt content.

    Rules come from the groups naming ``agent_token``; when no group names
    it, from the ``*`` groups.

    Args:
        origin: Origin the document was fetched from.
        content: robots.txt content.
        agent_token: Product token of our crawler.

    Returns:
        Parsed RobotsRule object.
    """
    groups: list[_Group] = []
    sitemaps: list[str] = []
    current: _Group | None = None
    in_agent_lines = False

    for raw_line in content.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue

        directive, _, value = line.partition(":")
        directive = directive.strip().lower()
        value = value.strip()

        if directive == "user-agent":
            # Consecutive user-agent lines share one group
            if current is None or not in_agent_lines:
                current = _Group()
                groups.append(current)
            current.agents.append(value.lower())
            in_agent_lines = True
            continue

        if directive == "sitemap":
            if value:
                sitemaps.append(value)
            continue

        in_agent_lines = False
        if current is None:
            continue

        if directive == "disallow" and value:
            current.disallow.append(value)
        elif directive == "allow" and value:
            current.allow.append(value)
        elif directive == "crawl-delay":
            try:
                current.crawl_delay = float(value)
            except ValueError:
                pass

    token = agent_token.lower()
    matching = [g for g in groups if token in g.agents]
    if not matching:
        matching = [g for g in groups if "*" in g.agents]

    rules = RobotsRule(origin=origin, sitemap_urls=sitemaps)
    for group in matching:
        rules.allowed_paths.extend(group.allow)
        rules.disallowed_paths.extend(group.disallow)
        if group.crawl_delay is not None:
            rules.crawl_delay = group.crawl_delay
    return rules


def path_matches(path: str, pattern: str) -> bool:
    """Check if path matches robots.txt pattern.

    Supports ``*`` wildcards and a trailing ``$`` end anchor.
    """
    if not pattern:
        return False

    regex_pattern = "^"
    for i, c in enumerate(pattern):
        if c == "*":
            regex_pattern += ".*"
        elif c == "$" and i == len(pattern) - 1:
            regex_pattern += "$"
        else:
            regex_pattern += re.escape(c)

    return re.match(regex_pattern, path) is not None


class RobotsGuard:
    """Crawl permission oracle for one site.

    Exposes ``is_loaded``, ``load()`` and ``is_allowed(url)``. URLs on any
    other origin are not covered by the loaded policy and are refused.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        base_url: str | None = None,
        agent_token: str | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._transport = transport
        self._origin = get_origin(base_url) if base_url else None
        self._agent_token = agent_token or settings.robots.agent_token
        self._fetch_timeout = (
            fetch_timeout if fetch_timeout is not None else settings.robots.fetch_timeout
        )
        self._rules: RobotsRule | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._rules is not None

    @property
    def origin(self) -> str | None:
        return self._origin

    @property
    def crawl_delay(self) -> float | None:
        return self._rules.crawl_delay if self._rules else None

    @property
    def sitemap_urls(self) -> list[str]:
        return list(self._rules.sitemap_urls) if self._rules else []

    def bind(self, url: str) -> None:
        """Bind the guard to the origin of ``url`` unless it already has one."""
        if self._origin is None:
            self._origin = get_origin(url)
            logger.debug("robots.txt guard bound", origin=self._origin)

    async def load(self) -> None:
        """Fetch and parse robots.txt for the guarded origin.

        A missing document (404/410) allows everything. Does nothing when
        already loaded.

        Raises:
            PermissionLoadError: If no origin is bound, the fetch fails, or
                the server answers with another non-200 status.
        """
        async with self._lock:
            if self._rules is not None:
                return

            if self._origin is None:
                raise PermissionLoadError("No site origin bound for robots.txt")

            robots_url = f"{self._origin}/robots.txt"

            try:
                response = await self._transport.get_raw(robots_url, timeout=self._fetch_timeout)
            except httpx.HTTPError as e:
                logger.error("robots.txt fetch error", url=robots_url, error=str(e))
                raise PermissionLoadError(
                    f"Failed to fetch robots.txt: {e}", url=robots_url
                ) from e

            if response.status in _MISSING_STATUSES:
                logger.debug("No robots.txt found", url=robots_url, status=response.status)
                rules = RobotsRule(origin=self._origin)
            elif response.status != 200:
                logger.error("robots.txt fetch failed", url=robots_url, status=response.status)
                raise PermissionLoadError(
                    f"robots.txt fetch failed with status {response.status}",
                    url=robots_url,
                    status=response.status,
                )
            else:
                rules = parse_robots_txt(self._origin, response.data, self._agent_token)

            self._rules = rules
            logger.info(
                "Loaded robots.txt",
                url=robots_url,
                disallowed_count=len(rules.disallowed_paths),
                allowed_count=len(rules.allowed_paths),
                crawl_delay=rules.crawl_delay,
            )

    def is_allowed(self, url: str) -> bool:
        """Check whether the loaded policy permits fetching ``url``.

        The longest matching pattern wins; Allow wins a tie.

        Raises:
            PermissionLoadError: If called before load().
        """
        if self._rules is None:
            raise PermissionLoadError("robots.txt not loaded", url=url)

        if get_origin(url) != self._rules.origin:
            logger.warning(
                "URL outside robots.txt scope",
                url=url,
                origin=self._rules.origin,
            )
            return False

        return self.blocking_rule(url) is None

    def blocking_rule(self, url: str) -> str | None:
        """Return the Disallow pattern that blocks ``url``, if any."""
        if self._rules is None:
            return None

        parsed = urlparse(url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"

        longest_disallow = max(
            (p for p in self._rules.disallowed_paths if path_matches(path, p)),
            key=len,
            default=None,
        )
        if longest_disallow is None:
            return None

        longest_allow = max(
            (p for p in self._rules.allowed_paths if path_matches(path, p)),
            key=len,
            default=None,
        )
        if longest_allow is not None and len(longest_allow) >= len(longest_disallow):
            return None
        return longest_disallow
