"""Tests for centralized configuration module."""

import os
import tempfile
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestSandboxSettings:
    """Test sandbox configuration settings."""

    def test_sandbox_default_values(self):
        """Test sandbox settings have the documented defaults."""
        from forge.config import SandboxSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = SandboxSettings()
            assert settings.enabled is True
            assert settings.timeout_sec == 30.0
            assert settings.max_output_chars == 50000
            assert settings.workspace_prefix == "forge-"
            assert settings.python_command == ""
            assert settings.max_concurrent == 8
            assert settings.rate_limit_max == 10
            assert settings.rate_limit_window_sec == 60.0

    def test_sandbox_from_environment(self):
        """Test sandbox settings can be loaded from environment."""
        from forge.config import SandboxSettings

        env = {
            "SANDBOX_ENABLED": "no",
            "SANDBOX_TIMEOUT_SEC": "5",
            "SANDBOX_MAX_OUTPUT_CHARS": "1000",
            "SANDBOX_WORKSPACE_ROOT": "/srv/forge",
            "SANDBOX_PYTHON_COMMAND": "python3.12",
            "SANDBOX_MAX_CONCURRENT": "2",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = SandboxSettings()
            assert settings.enabled is False
            assert settings.timeout_sec == 5.0
            assert settings.max_output_chars == 1000
            assert settings.resolved_workspace_root == "/srv/forge"
            assert settings.python_command == "python3.12"
            assert settings.max_concurrent == 2

    def test_workspace_root_defaults_to_tempdir(self):
        from forge.config import SandboxSettings

        with patch.dict(os.environ, {}, clear=True):
            assert SandboxSettings().resolved_workspace_root == tempfile.gettempdir()

    def test_rejects_nonpositive_timeout(self):
        from forge.config import SandboxSettings

        with patch.dict(os.environ, {"SANDBOX_TIMEOUT_SEC": "0"}, clear=True):
            with pytest.raises(ValidationError):
                SandboxSettings()


class TestRedisSettings:
    def test_pubsub_reads_block_by_default(self):
        from forge.config import RedisSettings

        with patch.dict(os.environ, {}, clear=True):
            assert RedisSettings().socket_timeout is None

    def test_redis_env_prefix(self):
        from forge.config import RedisSettings

        env = {"REDIS_HOST": "fanout", "REDIS_PORT": "6390", "REDIS_MAX_CONNECTIONS": "4"}
        with patch.dict(os.environ, env, clear=True):
            cfg = RedisSettings()
            assert (cfg.host, cfg.port, cfg.max_connections) == ("fanout", 6390, 4)


class TestCorsSettings:
    """Test CORS configuration settings."""

    def test_cors_default_values(self):
        from forge.config import CorsSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = CorsSettings()
            assert settings.origins == ["http://localhost:9002"]
            assert settings.allow_credentials is True

    def test_cors_wildcard_disables_credentials(self):
        from forge.config import CorsSettings

        with patch.dict(os.environ, {"CORS_ORIGINS": "*"}, clear=True):
            settings = CorsSettings()
            assert settings.origins == ["*"]
            assert settings.allow_credentials is False


class TestAuthSettings:
    def test_auth_disabled_without_token(self):
        from forge.config import AuthSettings

        with patch.dict(os.environ, {}, clear=True):
            assert AuthSettings().enabled is False

    def test_auth_enabled_with_token(self):
        from forge.config import AuthSettings

        with patch.dict(os.environ, {"AUTH_API_TOKEN": "t0ken"}, clear=True):
            settings = AuthSettings()
            assert settings.enabled is True
            assert settings.api_token == "t0ken"


class TestSettings:
    """Test main Settings class that combines all settings."""

    def test_settings_singleton_pattern(self):
        from forge.config import get_settings

        assert get_settings() is get_settings()

    def test_clear_settings_cache(self):
        from forge.config import clear_settings_cache, get_settings

        s1 = get_settings()
        clear_settings_cache()
        assert get_settings() is not s1

    def test_debug_settings(self):
        from forge.config import Settings

        with patch.dict(os.environ, {"REQUEST_DEBUG": "1", "WS_DEBUG": "true"}, clear=True):
            settings = Settings()
            assert settings.debug.request is True
            assert settings.debug.websocket is True
            assert hasattr(settings, "sandbox")
            assert hasattr(settings, "auth")
