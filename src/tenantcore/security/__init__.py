"""Request-side integration: token transport and the access guard.

Usage (in a grpc.aio servicer)::

    from tenantcore.security import AccessGuard

    guard = AccessGuard(token_manager, resolver)

    @grpc_error_handler
    async def AssignRole(self, request, context):
        actor_id = await guard.require(context, request.namespace_id, Permissions.USER_ROLE_ASSIGN)
        ...
"""

from __future__ import annotations

from .guard import ACCESS_DENIED, AccessGuard, GuardResult
from .metadata import (
    GRPC_AUTH_HEADER,
    GRPC_REQUEST_ID_HEADER,
    GRPC_TOKEN_HEADER,
    create_grpc_metadata_with_token,
    extract_bearer_token,
    extract_request_id,
)

__all__ = [
    "ACCESS_DENIED",
    "AccessGuard",
    "GRPC_AUTH_HEADER",
    "GRPC_REQUEST_ID_HEADER",
    "GRPC_TOKEN_HEADER",
    "GuardResult",
    "create_grpc_metadata_with_token",
    "extract_bearer_token",
    "extract_request_id",
]
