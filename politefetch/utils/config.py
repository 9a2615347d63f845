"""
Configuration management for politefetch.
Loads and validates settings from YAML files and environment variables.
"""

import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Environment variable naming the challenge-solving proxy endpoint.
PROXY_ENDPOINT_ENV = "FLARESOLVERR_URL"


class ProxySessionMode(str, Enum):
    """How the proxy is asked to keep browser state between requests."""

    REUSE = "reuse"  # one session shared across fetches
    STATELESS = "stateless"  # every request.get is independent


class GeneralConfig(BaseModel):
    """General configuration."""

    model_config = ConfigDict(extra="forbid")

    log_level: str = "INFO"
    json_logs: bool = True


class FetcherConfig(BaseModel):
    """Direct HTTP fetch configuration."""

    model_config = ConfigDict(extra="forbid")

    user_agent: str | None = None  # None = politefetch default UA string
    request_timeout: float = 30.0


class ProxyConfig(BaseModel):
    """Challenge-solving proxy configuration (FlareSolverr API)."""

    model_config = ConfigDict(extra="forbid")

    endpoint: str | None = None
    max_timeout_ms: int = 60000  # upper bound for the proxy's own browser attempt
    request_timeout: float = 90.0  # client side, must exceed max_timeout_ms
    session_mode: ProxySessionMode = ProxySessionMode.REUSE

    @field_validator("endpoint")
    @classmethod
    def empty_endpoint_is_none(cls, v: str | None) -> str | None:
        """Treat an empty endpoint as "not configured"."""
        if v is not None and not v.strip():
            return None
        return v


class RobotsConfig(BaseModel):
    """robots.txt compliance configuration."""

    model_config = ConfigDict(extra="forbid")

    base_url: str | None = None  # None = origin of the first direct fetch
    agent_token: str = "politefetch"
    fetch_timeout: float = 10.0


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    robots: RobotsConfig = Field(default_factory=RobotsConfig)


class FetchRouteKind(str, Enum):
    """Route taken by every fetch of a process."""

    DIRECT = "direct"
    PROXY = "proxy"


@dataclass(frozen=True)
class FetchRoute:
    """Fetch route selected once at startup.

    Direct routes check robots.txt before fetching. Proxy routes hand the URL
    to the challenge-solving proxy and never consult robots.txt.
    """

    kind: FetchRouteKind
    endpoint: str | None = None
    session_mode: ProxySessionMode = ProxySessionMode.REUSE

    @classmethod
    def direct(cls) -> "FetchRoute":
        return cls(kind=FetchRouteKind.DIRECT)

    @classmethod
    def via_proxy(
        cls,
        endpoint: str,
        session_mode: ProxySessionMode = ProxySessionMode.REUSE,
    ) -> "FetchRoute":
        return cls(kind=FetchRouteKind.PROXY, endpoint=endpoint, session_mode=session_mode)

    @property
    def uses_proxy(self) -> bool:
        return self.kind == FetchRouteKind.PROXY


def resolve_fetch_route(settings: Settings | None = None) -> FetchRoute:
    """Build the fetch route from settings.

    Args:
        settings: Settings to use. Uses global settings if None.

    Returns:
        FetchRoute for the process.
    """
    if settings is None:
        settings = get_settings()

    if settings.proxy.endpoint:
        return FetchRoute.via_proxy(settings.proxy.endpoint, settings.proxy.session_mode)
    return FetchRoute.direct()


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml with local.yaml overrides.

    local.yaml holds per-machine overrides under a top-level ``settings`` key:

        settings:
          proxy:
            session_mode: stateless

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config: dict[str, Any] = {}

    base_path = config_dir / "settings.yaml"
    if base_path.exists():
        with open(base_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    local_path = config_dir / "local.yaml"
    if local_path.exists():
        with open(local_path, encoding="utf-8") as f:
            local_overrides = yaml.safe_load(f) or {}
        if "settings" in local_overrides:
            config = _deep_merge(config, local_overrides["settings"])

    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with POLITEFETCH_ and use
    double underscores for nested keys. FLARESOLVERR_URL is honoured as
    the proxy endpoint.

    Example:
        POLITEFETCH_GENERAL__LOG_LEVEL=DEBUG

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    prefix = "POLITEFETCH_"

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key == "POLITEFETCH_CONFIG_DIR":
            continue

        key_path = key[len(prefix) :].lower().split("__")

        current = config
        for part in key_path[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        final_key = key_path[-1]
        try:
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif "." in value:
                current[final_key] = float(value)
            else:
                current[final_key] = int(value)
        except ValueError:
            current[final_key] = value

    endpoint = os.environ.get(PROXY_ENDPOINT_ENV)
    if endpoint:
        config.setdefault("proxy", {})["endpoint"] = endpoint

    return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. YAML configuration files
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    config_dir = Path(os.environ.get("POLITEFETCH_CONFIG_DIR", "config"))

    config = _load_yaml_config(config_dir)
    config = _apply_env_overrides(config)

    return Settings(**config)
