"""Identifying User-Agent string sent with every request."""

from politefetch import __version__

USER_AGENT_TOKEN = "politefetch"

USER_AGENT = f"Mozilla/5.0 (compatible; {USER_AGENT_TOKEN}/{__version__})"


def get_user_agent(override: str | None = None) -> str:
    """Return the User-Agent header value, honouring a configured override."""
    return override or USER_AGENT
