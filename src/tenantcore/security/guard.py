"""Access guard: verify the caller, then authorize the action.

The request-handler flow in one place::

    token ──TokenManager.verify──▶ user ──PermissionResolver.has_permission──▶ allow/deny

Every denial carries the same public reason so callers cannot tell a bad
token from a missing role or a missing permission.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import grpc

from ..exceptions import NotFoundError
from ..logging import get_request_logger
from ..permissions.resolver import PermissionResolver
from ..tokens import TokenManager
from .metadata import extract_bearer_token, extract_request_id

ACCESS_DENIED = "access denied"


@dataclass(frozen=True)
class GuardResult:
    """Outcome of an authorization check."""

    allowed: bool = False
    user_id: Optional[str] = None
    reason: str = ""
    authenticated: bool = False

    @property
    def blocked(self) -> bool:
        return not self.allowed


class AccessGuard:
    """Combines token verification with permission resolution."""

    def __init__(self, tokens: TokenManager, resolver: PermissionResolver) -> None:
        self._tokens = tokens
        self._resolver = resolver

    def authorize(
        self,
        presented_token: Optional[str],
        namespace_id: str,
        permission: str,
        request_id: Optional[str] = None,
    ) -> GuardResult:
        """Decide whether the holder of ``presented_token`` may do ``permission`` here.

        Raises only for integrity failures (``InconsistentError``); an unknown
        namespace is reported as a plain denial.
        """
        log = get_request_logger(__name__, request_id=request_id)
        verified = self._tokens.verify(presented_token)
        if verified is None:
            log.info("Access denied: missing or invalid token")
            return GuardResult(allowed=False, reason=ACCESS_DENIED)
        log = get_request_logger(__name__, request_id=request_id, user_id=verified.user_id)

        try:
            allowed = self._resolver.has_permission(verified.user_id, namespace_id, permission)
        except NotFoundError:
            log.info("Access denied: unknown namespace %s", namespace_id)
            allowed = False

        if not allowed:
            log.info("Access denied: %s at namespace %s", permission, namespace_id)
            return GuardResult(allowed=False, user_id=verified.user_id, reason=ACCESS_DENIED, authenticated=True)

        log.debug("Access granted: %s at namespace %s", permission, namespace_id)
        return GuardResult(allowed=True, user_id=verified.user_id, authenticated=True)

    async def require(
        self,
        context: grpc.aio.ServicerContext,
        namespace_id: str,
        permission: str,
    ) -> Optional[str]:
        """Authorize the caller of a gRPC handler or abort the call.

        Aborts with UNAUTHENTICATED when no valid token was presented and
        with PERMISSION_DENIED when the token is valid but not allowed.

        Returns:
            The caller's user id when allowed.
        """
        metadata = context.invocation_metadata()
        result = self.authorize(
            extract_bearer_token(metadata),
            namespace_id,
            permission,
            request_id=extract_request_id(metadata),
        )
        if result.allowed:
            return result.user_id

        status = grpc.StatusCode.PERMISSION_DENIED if result.authenticated else grpc.StatusCode.UNAUTHENTICATED
        await context.abort(status, result.reason)
        return None


__all__ = ["ACCESS_DENIED", "AccessGuard", "GuardResult"]
