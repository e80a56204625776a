"""Shared fixtures: an in-memory database and the core components over it."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest

from tenantcore import (
    AssignmentStore,
    Database,
    NamespaceTree,
    PermissionResolver,
    RoleCatalog,
    SecurityConfig,
    TokenManager,
    UserDirectory,
    bootstrap,
)
from tenantcore.bootstrap import BootstrapResult
from tenantcore.config import DatabaseConfig


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def db() -> Iterator[Database]:
    database = Database(DatabaseConfig(url="sqlite://"))
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def tree(db: Database) -> NamespaceTree:
    return NamespaceTree(db)


@pytest.fixture
def catalog(db: Database) -> RoleCatalog:
    return RoleCatalog(db)


@pytest.fixture
def assignments(db: Database) -> AssignmentStore:
    return AssignmentStore(db)


@pytest.fixture
def resolver(db: Database) -> PermissionResolver:
    return PermissionResolver(db)


@pytest.fixture
def users(db: Database) -> UserDirectory:
    return UserDirectory(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def security_config() -> SecurityConfig:
    return SecurityConfig(token_pepper="test-pepper", max_sessions_per_user=3)


@pytest.fixture
def tokens(db: Database, security_config: SecurityConfig, clock: FakeClock) -> TokenManager:
    return TokenManager(db, security_config, clock=clock)


@pytest.fixture
def seeded(db: Database) -> BootstrapResult:
    """Root namespace plus system permissions and roles."""
    return bootstrap(db)


@pytest.fixture
def make_user(users: UserDirectory):
    """Factory creating active users with unique usernames."""

    def _make(username: str, **kwargs):
        return users.create(
            name=kwargs.pop("name", username.title()),
            username=username,
            email=kwargs.pop("email", f"{username}@example.com"),
            password_hash=kwargs.pop("password_hash", "hashed"),
            **kwargs,
        )

    return _make
