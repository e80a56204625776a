"""Tests for CoreConfig and its env loader."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from tenantcore import CoreConfig, DatabaseConfig, LogLevel, SecurityConfig, load_config_from_env
from tenantcore.config import SigningBackendType


class TestCoreConfig:
    """Tests for CoreConfig model."""

    def test_defaults(self) -> None:
        """Test creating a CoreConfig with defaults."""
        config = CoreConfig()
        assert config.log_level == LogLevel.INFO
        assert config.log_json is False
        assert config.root_namespace == "root"
        assert config.database.url == "sqlite://"
        assert config.database.isolation_level == "SERIALIZABLE"
        assert config.security.session_ttl_seconds == 24 * 3600
        assert config.security.api_ttl_seconds == 365 * 24 * 3600
        assert config.security.max_sessions_per_user == 5
        assert config.security.touch_on_verify is True

    def test_log_level_from_string(self) -> None:
        """Test log level accepts any case."""
        assert CoreConfig(log_level="debug").log_level == LogLevel.DEBUG

    def test_log_level_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            CoreConfig(log_level="LOUD")

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(PydanticValidationError):
            CoreConfig(redis_url="redis://localhost")

    def test_root_namespace_without_separator(self) -> None:
        with pytest.raises(ValueError):
            CoreConfig(root_namespace="a/b")

    def test_isolation_level_normalized(self) -> None:
        assert DatabaseConfig(isolation_level="repeatable_read").isolation_level == "REPEATABLE READ"
        with pytest.raises(ValueError, match="Invalid isolation level"):
            DatabaseConfig(isolation_level="READ UNCOMMITTED")

    def test_security_bounds(self) -> None:
        with pytest.raises(PydanticValidationError):
            SecurityConfig(session_ttl_seconds=0)
        with pytest.raises(PydanticValidationError):
            SecurityConfig(max_sessions_per_user=-1)
        assert SecurityConfig(max_sessions_per_user=0).max_sessions_per_user == 0


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env."""

    def test_defaults_without_env(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_env()
        assert config.database.url == "sqlite://"
        assert config.security.signing_backend == SigningBackendType.UNSIGNED
        assert config.security.allow_unsigned_tokens is False

    def test_reads_environment(self) -> None:
        env = {
            "LOG_LEVEL": "WARNING",
            "LOG_JSON": "true",
            "SERVICE_NAME": "accounts",
            "ROOT_NAMESPACE": "acme",
            "DATABASE_URL": "sqlite:///tenant.db",
            "DATABASE_ISOLATION_LEVEL": "READ COMMITTED",
            "SIGNING_BACKEND": "hmac",
            "SIGNING_SHARED_SECRET": "s3cret",
            "TOKEN_PEPPER": "pepper",
            "SESSION_TTL_SECONDS": "600",
            "MAX_SESSIONS_PER_USER": "2",
            "ALLOW_UNSIGNED_TOKENS": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config_from_env()

        assert config.log_level == LogLevel.WARNING
        assert config.log_json is True
        assert config.service_name == "accounts"
        assert config.root_namespace == "acme"
        assert config.database.url == "sqlite:///tenant.db"
        assert config.database.isolation_level == "READ COMMITTED"
        assert config.security.signing_backend == SigningBackendType.HMAC
        assert config.security.shared_secret == "s3cret"
        assert config.security.token_pepper == "pepper"
        assert config.security.session_ttl_seconds == 600
        assert config.security.max_sessions_per_user == 2
        assert config.security.allow_unsigned_tokens is True
