"""Privilege-level ordering and the authority rules built on it.

Provides:
- ``ROLE_HIERARCHY`` — role name → level table.
- ``level_of()`` — resolve a role (name or record) to its level.
- ``can_assign()`` / ``can_manage()`` — strict "outranks" checks.
- ``assignable_roles()`` — filter roles an actor may hand out.

Rule: an actor may only act on roles strictly below its own level, so a
role can never assign or manage its own level or anything above it.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, TypeVar, Union

from ..records import RoleInfo
from .constants import RoleLevel

ROLE_HIERARCHY: dict[str, int] = {
    "admin": RoleLevel.ADMIN,
    "manager": RoleLevel.MANAGER,
    "customer": RoleLevel.CUSTOMER,
    "user": RoleLevel.USER,
}

UNKNOWN_LEVEL = int(RoleLevel.UNKNOWN)

RoleRef = Union[str, RoleInfo, None]
_R = TypeVar("_R", str, RoleInfo)


def level_of(role: RoleRef, hierarchy: Optional[Mapping[str, int]] = None) -> int:
    """Numeric privilege level of a role (lower = more privileged).

    A ``RoleInfo`` carries its own level. A bare name is looked up in the
    hierarchy table; unknown names and ``None`` get ``UNKNOWN_LEVEL``, so
    they can never outrank a known role.

    Example::

        >>> level_of("manager")
        2
        >>> level_of("intern")
        999
    """
    if role is None:
        return UNKNOWN_LEVEL
    if isinstance(role, RoleInfo):
        return int(role.level)
    table = ROLE_HIERARCHY if hierarchy is None else hierarchy
    return int(table.get(role, UNKNOWN_LEVEL))


def can_assign(actor_role: RoleRef, target_role: RoleRef, hierarchy: Optional[Mapping[str, int]] = None) -> bool:
    """True iff the actor's role strictly outranks the role being assigned."""
    return level_of(actor_role, hierarchy) < level_of(target_role, hierarchy)


def can_manage(actor_role: RoleRef, target_role: RoleRef, hierarchy: Optional[Mapping[str, int]] = None) -> bool:
    """True iff the actor's role strictly outranks the target user's role.

    Kept separate from ``can_assign``: the policies coincide today but
    answer different questions.
    """
    actor_level = level_of(actor_role, hierarchy)
    target_level = level_of(target_role, hierarchy)
    return actor_level < target_level


def assignable_roles(
    actor_role: RoleRef,
    all_roles: Iterable[_R],
    hierarchy: Optional[Mapping[str, int]] = None,
) -> list[_R]:
    """Roles strictly less privileged than the actor's, input order kept."""
    actor_level = level_of(actor_role, hierarchy)
    return [role for role in all_roles if level_of(role, hierarchy) > actor_level]


def default_level_for(name: str, hierarchy: Optional[Mapping[str, int]] = None) -> int:
    """Level a newly defined role gets when none is given explicitly."""
    return level_of(name, hierarchy)


__all__ = [
    "ROLE_HIERARCHY",
    "UNKNOWN_LEVEL",
    "assignable_roles",
    "can_assign",
    "can_manage",
    "default_level_for",
    "level_of",
]
