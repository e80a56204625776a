"""Configuration contract for the tenantcore authorization core.

Pydantic-validated models for logging, storage and token security. Embedding
services build a ``CoreConfig`` directly or via ``load_config_from_env()``;
direct os.environ/os.getenv usage elsewhere in the package is FORBIDDEN.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SigningBackendType(str, Enum):
    """Supported signing backends for signed session tokens.

    - UNSIGNED: base64 payload, no signature (dev/test only)
    - HMAC: symmetric shared secret
    """

    UNSIGNED = "unsigned"
    HMAC = "hmac"


_ISOLATION_LEVELS = ("SERIALIZABLE", "REPEATABLE READ", "READ COMMITTED")


class DatabaseConfig(BaseModel):
    """Storage configuration.

    Namespace-tree mutations rewrite whole subtrees, so the transaction
    isolation level must be at least REPEATABLE READ.
    """

    model_config = {"extra": "ignore"}

    url: str = Field(
        default="sqlite://",
        description="SQLAlchemy database URL (default: in-memory SQLite)",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    isolation_level: str = Field(
        default="SERIALIZABLE",
        description="Transaction isolation level for every core operation",
    )

    @field_validator("isolation_level", mode="before")
    @classmethod
    def validate_isolation_level(cls, v: str) -> str:
        normalized = str(v).strip().upper().replace("_", " ")
        if normalized not in _ISOLATION_LEVELS:
            raise ValueError(f"Invalid isolation level: {v}. Must be one of {list(_ISOLATION_LEVELS)}")
        return normalized


class SecurityConfig(BaseModel):
    """Token issuance and verification settings.

    Environment variables:
        SIGNING_BACKEND         — unsigned | hmac
        SIGNING_KEY_ID          — kid embedded in signed tokens
        SIGNING_SHARED_SECRET   — HMAC secret
        TOKEN_PEPPER            — secret mixed into session-token hashes
        SESSION_TTL_SECONDS     — default session lifetime
        API_TTL_SECONDS         — default API token lifetime
        MAX_SESSIONS_PER_USER   — live-session cap (0 = unlimited)
        ALLOW_UNSIGNED_TOKENS   — accept signed-format tokens from the unsigned backend (dev only)
    """

    model_config = {"extra": "ignore"}

    signing_backend: SigningBackendType = Field(
        default=SigningBackendType.UNSIGNED,
        description="Signing backend for signed session tokens",
    )
    signing_key_id: str = Field(default="hmac-001", description="Active key identifier (kid)")
    shared_secret: str = Field(default="", description="HMAC shared secret")
    token_pepper: str = Field(
        default="",
        description="Secret mixed into session-token hashes",
    )

    session_ttl_seconds: int = Field(default=24 * 3600, gt=0)
    api_ttl_seconds: int = Field(default=365 * 24 * 3600, gt=0)
    max_sessions_per_user: int = Field(default=5, ge=0)
    touch_on_verify: bool = Field(
        default=True,
        description="Update last_used_at on every successful verify",
    )
    allow_unsigned_tokens: bool = Field(
        default=False,
        description="Issue and accept signed-format tokens when the backend does not sign",
    )


class CoreConfig(BaseModel):
    """Top-level configuration for the authorization core."""

    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_json: bool = Field(default=False, description="Use JSON log format")
    service_name: Optional[str] = Field(default=None)

    root_namespace: str = Field(default="root", min_length=1)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("root_namespace")
    @classmethod
    def validate_root_namespace(cls, v: str) -> str:
        if "/" in v:
            raise ValueError("Root namespace name must not contain '/'")
        return v

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",
    }


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


def load_config_from_env() -> CoreConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL, LOG_JSON, SERVICE_NAME, ROOT_NAMESPACE
    - DATABASE_URL, DATABASE_ECHO, DATABASE_ISOLATION_LEVEL
    - SIGNING_BACKEND, SIGNING_KEY_ID, SIGNING_SHARED_SECRET, TOKEN_PEPPER
    - SESSION_TTL_SECONDS, API_TTL_SECONDS, MAX_SESSIONS_PER_USER, ALLOW_UNSIGNED_TOKENS
    """
    import os

    database = DatabaseConfig(
        url=os.getenv("DATABASE_URL", "sqlite://"),
        echo=_env_flag(os.getenv("DATABASE_ECHO", "false")),
        isolation_level=os.getenv("DATABASE_ISOLATION_LEVEL", "SERIALIZABLE"),
    )

    security = SecurityConfig(
        signing_backend=os.getenv("SIGNING_BACKEND", "unsigned"),
        signing_key_id=os.getenv("SIGNING_KEY_ID", "hmac-001"),
        shared_secret=os.getenv("SIGNING_SHARED_SECRET", ""),
        token_pepper=os.getenv("TOKEN_PEPPER", ""),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", str(24 * 3600))),
        api_ttl_seconds=int(os.getenv("API_TTL_SECONDS", str(365 * 24 * 3600))),
        max_sessions_per_user=int(os.getenv("MAX_SESSIONS_PER_USER", "5")),
        allow_unsigned_tokens=_env_flag(os.getenv("ALLOW_UNSIGNED_TOKENS", "false")),
    )

    return CoreConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_flag(os.getenv("LOG_JSON", "false")),
        service_name=os.getenv("SERVICE_NAME"),
        root_namespace=os.getenv("ROOT_NAMESPACE", "root"),
        database=database,
        security=security,
    )


__all__ = [
    "CoreConfig",
    "DatabaseConfig",
    "LogLevel",
    "SecurityConfig",
    "SigningBackendType",
    "load_config_from_env",
]
