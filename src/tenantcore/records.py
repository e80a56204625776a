"""Value types returned by the core.

Every record is a frozen dataclass detached from the storage session, so
callers can hold and compare them after the transaction has closed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class UserStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"
    BLOCKED = "blocked"


class TokenType(str, Enum):
    SESSION = "session"
    API = "api"


@dataclass(frozen=True)
class NamespaceInfo:
    id: str
    name: str
    parent_id: Optional[str]
    full_path: str
    depth: int
    domain: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> NamespaceInfo:
        return cls(
            id=row.id,
            name=row.name,
            parent_id=row.parent_id,
            full_path=row.full_path,
            depth=row.depth,
            domain=row.domain,
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class NamespaceTreeNode:
    """A namespace with its children, as produced by ``NamespaceTree.tree()``."""

    namespace: NamespaceInfo
    children: tuple[NamespaceTreeNode, ...] = ()


@dataclass(frozen=True)
class PermissionInfo:
    id: str
    name: str
    display_name: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    is_system: bool = False

    @classmethod
    def from_row(cls, row) -> PermissionInfo:
        return cls(
            id=row.id,
            name=row.name,
            display_name=row.display_name,
            description=row.description,
            category=row.category,
            is_system=row.is_system,
        )


@dataclass(frozen=True)
class RoleInfo:
    id: str
    name: str
    origin_namespace_id: str
    level: int
    display_name: str = ""
    description: Optional[str] = None
    is_system: bool = False

    @classmethod
    def from_row(cls, row) -> RoleInfo:
        return cls(
            id=row.id,
            name=row.name,
            origin_namespace_id=row.origin_namespace_id,
            level=row.level,
            display_name=row.display_name,
            description=row.description,
            is_system=row.is_system,
        )


@dataclass(frozen=True)
class UserInfo:
    id: str
    name: str
    username: str
    email: str
    status: UserStatus = UserStatus.ACTIVE

    @classmethod
    def from_row(cls, row) -> UserInfo:
        return cls(
            id=row.id,
            name=row.name,
            username=row.username,
            email=row.email,
            status=UserStatus(row.status),
        )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


@dataclass(frozen=True)
class Assignment:
    """One (user, namespace) → role row, with both sides resolved."""

    user_id: str
    namespace: NamespaceInfo
    role: RoleInfo


@dataclass(frozen=True)
class Member:
    """A user holding a role at one namespace."""

    user: UserInfo
    role: RoleInfo


@dataclass(frozen=True)
class CopyResult:
    copied: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class IssuedToken:
    """Result of token issuance.

    ``token`` is the credential handed to the client. For session tokens it
    is never stored; only its hash is.
    """

    token: str = field(repr=False)
    token_id: str
    jwt_id: str
    type: TokenType
    user_id: str
    expires_at: datetime


@dataclass(frozen=True)
class VerifiedToken:
    user_id: str
    token_id: str
    type: TokenType


@dataclass(frozen=True)
class SessionInfo:
    token_id: str
    type: TokenType
    expires_at: datetime
    created_at: datetime
    last_used_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


__all__ = [
    "Assignment",
    "CopyResult",
    "IssuedToken",
    "Member",
    "NamespaceInfo",
    "NamespaceTreeNode",
    "PermissionInfo",
    "RoleInfo",
    "SessionInfo",
    "TokenType",
    "UserInfo",
    "UserStatus",
    "VerifiedToken",
]
