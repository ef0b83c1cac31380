"""Config management for featurebase-mcp-server.

All settings come from the environment. A ``.env`` file in the working
directory is loaded first if present; real environment variables win.
"""
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


DEFAULT_API_URL = "https://do.featurebase.app"
DEFAULT_API_VERSION = "2026-01-01.nova"
DEFAULT_PORT = 3000
LOG_FORMATS = ("plain", "json")

TRANSPORT_ALIASES = {
    "stdio": "stdio",
    "http": "http",
    "streamable-http": "http",
    "streamable_http": "http",
}

ENV_KEYS = (
    "FEATUREBASE_API_KEY",
    "FEATUREBASE_API_URL",
    "FEATUREBASE_API_VERSION",
    "MCP_TRANSPORT",
    "MCP_HOST",
    "PORT",
    "MCP_PATH",
    "SERVER_URL",
    "ENABLE_OAUTH",
    "MCP_API_KEY",
    "MCP_STATELESS",
    "MCP_SESSION_IDLE_TIMEOUT",
    "OAUTH_SWEEP_INTERVAL",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_LOG_TABLE",
)


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    def _get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.data.get(key)
        if value is None or value == "":
            return default
        return value

    def _number(self, key: str, default: float) -> float:
        raw = self._get(key)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError:
            raise ConfigError(f"{key} must be a number, got {raw!r}")
        if value < 0:
            raise ConfigError(f"{key} must not be negative")
        return value

    @property
    def featurebase_api_key(self) -> Optional[str]:
        return self._get("FEATUREBASE_API_KEY")

    @property
    def featurebase_api_url(self) -> str:
        return self._get("FEATUREBASE_API_URL", DEFAULT_API_URL).rstrip("/")

    @property
    def featurebase_api_version(self) -> str:
        return self._get("FEATUREBASE_API_VERSION", DEFAULT_API_VERSION)

    @property
    def transport(self) -> str:
        raw = self._get("MCP_TRANSPORT", "stdio")
        transport = TRANSPORT_ALIASES.get(raw.strip().lower())
        if transport is None:
            raise ConfigError(f"MCP_TRANSPORT must be 'stdio' or 'http', got {raw!r}")
        return transport

    @property
    def host(self) -> str:
        return self._get("MCP_HOST", "0.0.0.0")

    @property
    def port(self) -> int:
        raw = self._get("PORT")
        if raw is None:
            return DEFAULT_PORT
        try:
            port = int(raw)
        except ValueError:
            raise ConfigError(f"PORT must be an integer, got {raw!r}")
        if not 0 < port < 65536:
            raise ConfigError(f"PORT out of range: {port}")
        return port

    @property
    def mcp_path(self) -> str:
        path = self._get("MCP_PATH", "/mcp").rstrip("/")
        if not path.startswith("/"):
            path = "/" + path
        return path

    @property
    def server_url(self) -> str:
        return self._get("SERVER_URL", f"http://localhost:{self.port}").rstrip("/")

    @property
    def enable_oauth(self) -> bool:
        return _as_bool(self._get("ENABLE_OAUTH"), True)

    @property
    def mcp_api_key(self) -> Optional[str]:
        return self._get("MCP_API_KEY")

    @property
    def stateless(self) -> bool:
        return _as_bool(self._get("MCP_STATELESS"), False)

    @property
    def session_idle_timeout(self) -> float:
        return self._number("MCP_SESSION_IDLE_TIMEOUT", 0)

    @property
    def oauth_sweep_interval(self) -> float:
        return self._number("OAUTH_SWEEP_INTERVAL", 300)

    @property
    def log_level(self) -> str:
        return self._get("LOG_LEVEL", "INFO").upper()

    @property
    def log_format(self) -> str:
        value = self._get("LOG_FORMAT", "plain").lower()
        if value not in LOG_FORMATS:
            raise ConfigError(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}, got {value!r}")
        return value

    @property
    def supabase_url(self) -> Optional[str]:
        return self._get("SUPABASE_URL")

    @property
    def supabase_key(self) -> Optional[str]:
        return self._get("SUPABASE_KEY")

    @property
    def supabase_log_table(self) -> str:
        return self._get("SUPABASE_LOG_TABLE", "logs")

    def validate(self) -> None:
        """Check everything needed to start; raises ConfigError."""
        if not self.featurebase_api_key:
            raise ConfigError("FEATUREBASE_API_KEY environment variable is required")
        # Touch the parsed properties so bad values fail at startup.
        self.transport
        self.port
        self.session_idle_timeout
        self.oauth_sweep_interval
        self.log_format

    def with_overrides(self, **overrides) -> "Config":
        """Copy with some variables replaced (None values are ignored)."""
        data = dict(self.data)
        data.update({key: str(value) for key, value in overrides.items() if value is not None})
        return Config(data)


def load_config(env: Mapping[str, str] = None, env_file: str = ".env") -> Config:
    """Load config from the environment (and ``env_file`` if it exists)."""
    if env is None:
        if Path(env_file).exists():
            load_dotenv(env_file)
        env = os.environ
    return Config({key: env[key] for key in ENV_KEYS if env.get(key) is not None})
