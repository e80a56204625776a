"""Credential transport over gRPC metadata.

Looks for a credential in:
1. ``authorization: Bearer <token>``
2. ``x-tenant-token: <token>``
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

GRPC_AUTH_HEADER = "authorization"
GRPC_TOKEN_HEADER = "x-tenant-token"  # nosec B105
GRPC_REQUEST_ID_HEADER = "x-request-id"
BEARER_PREFIX = "bearer "

MetadataPairs = Iterable[tuple[str, Union[str, bytes]]]


def _as_text(value: Union[str, bytes]) -> str:
    return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value


def extract_bearer_token(metadata: Optional[MetadataPairs]) -> Optional[str]:
    """Return the presented credential, or None when neither header carries one.

    Accepts the pairs returned by ``context.invocation_metadata()``; header
    names are matched case-insensitively.

    Example:
        async def AssignRole(self, request, context):
            token = extract_bearer_token(context.invocation_metadata())
    """
    if not metadata:
        return None
    headers = {key.lower(): _as_text(value) for key, value in metadata}

    auth_header = headers.get(GRPC_AUTH_HEADER, "").strip()
    if auth_header.lower().startswith(BEARER_PREFIX):
        token_str = auth_header[len(BEARER_PREFIX):].strip()
        if token_str:
            return token_str

    token_str = headers.get(GRPC_TOKEN_HEADER, "").strip()
    return token_str or None


def extract_request_id(metadata: Optional[MetadataPairs]) -> Optional[str]:
    """Caller-supplied correlation id from ``x-request-id``, if any."""
    if not metadata:
        return None
    for key, value in metadata:
        if key.lower() == GRPC_REQUEST_ID_HEADER:
            return _as_text(value).strip() or None
    return None


def create_grpc_metadata_with_token(
    token_str: str,
    additional_metadata: Optional[list[tuple[str, str]]] = None,
) -> list[tuple[str, str]]:
    """Client side: metadata list carrying ``token_str`` as a bearer credential."""
    metadata = [(GRPC_AUTH_HEADER, f"Bearer {token_str}")]
    if additional_metadata:
        metadata.extend(additional_metadata)
    return metadata


__all__ = [
    "GRPC_AUTH_HEADER",
    "GRPC_REQUEST_ID_HEADER",
    "GRPC_TOKEN_HEADER",
    "create_grpc_metadata_with_token",
    "extract_bearer_token",
    "extract_request_id",
]
