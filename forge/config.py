"""Environment-driven settings.

Each section is its own ``BaseSettings`` with its own prefix and is read
once per process through ``get_settings()``:

    from forge.config import get_settings
    limit = get_settings().sandbox.timeout_sec
"""

import tempfile
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_bool(v):
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


class RedisSettings(BaseSettings):
    """Redis used for fanning results out to session rooms."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = "redis"
    port: int = 6379
    password: str = ""
    max_connections: int = Field(default=50, ge=1)
    pool_timeout_sec: float = Field(default=5.0, description="Wait for a pooled connection")
    health_check_interval: int = 30
    socket_timeout: float | None = Field(default=None, description="None keeps pub/sub reads blocking")
    socket_connect_timeout: float = 5.0


class SandboxSettings(BaseSettings):
    """Limits and locations for code execution."""

    model_config = SettingsConfigDict(env_prefix="SANDBOX_", extra="ignore")

    enabled: bool = True
    timeout_sec: float = Field(default=30.0, gt=0, description="Wall-clock limit per execution")
    max_output_chars: int = Field(default=50000, gt=0, description="Cap per output stream")
    workspace_root: str = Field(default="", description="Parent directory for workspaces")
    workspace_prefix: str = Field(default="forge-", min_length=1)
    python_command: str = Field(default="", description="Override the python interpreter")
    max_concurrent: int = Field(default=8, ge=1, description="Concurrent executions per process")
    queue_timeout_sec: float = Field(default=5.0, ge=0, description="Wait for a free slot")
    rate_limit_max: int = Field(default=10, ge=0, description="Executions per caller per window, 0 disables")
    rate_limit_window_sec: float = Field(default=60.0, gt=0)

    @field_validator("enabled", mode="before")
    @classmethod
    def parse_enabled(cls, v):
        return _parse_bool(v)

    @property
    def resolved_workspace_root(self) -> str:
        """Workspace parent directory, defaulting to the system temp dir."""
        return self.workspace_root or tempfile.gettempdir()


class CorsSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    # the collaborative editor frontend
    origins_raw: str = Field(default="http://localhost:9002", validation_alias="CORS_ORIGINS")
    origins_regex: str = Field(default="", validation_alias="CORS_ORIGINS_REGEX")

    @property
    def origins(self) -> list[str]:
        return [origin.strip() for origin in self.origins_raw.split(",") if origin.strip()]

    @property
    def allow_credentials(self) -> bool:
        # browsers reject credentials with a wildcard origin
        return "*" not in self.origins and not self.origins_regex


class DebugSettings(BaseSettings):
    """REQUEST_DEBUG turns on the HTTP access log, WS_DEBUG the session log."""

    model_config = SettingsConfigDict(extra="ignore")

    request: bool = Field(default=False, alias="request_debug")
    websocket: bool = Field(default=False, alias="ws_debug")

    @field_validator("request", "websocket", mode="before")
    @classmethod
    def parse_flag(cls, v):
        return _parse_bool(v)


class AuthSettings(BaseSettings):
    """Bearer token check in front of the execution endpoints."""

    model_config = SettingsConfigDict(env_prefix="AUTH_", extra="ignore")

    api_token: str = Field(default="", description="Shared bearer token; empty disables auth")

    @property
    def enabled(self) -> bool:
        return bool(self.api_token)


class Settings:
    """All settings sections.

    A plain class rather than a ``BaseSettings`` so each section keeps its
    own env prefix.
    """

    def __init__(self) -> None:
        self.redis = RedisSettings()
        self.sandbox = SandboxSettings()
        self.cors = CorsSettings()
        self.debug = DebugSettings()
        self.auth = AuthSettings()


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
