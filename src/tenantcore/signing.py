"""Signed-token wire format.

A signed token carries its claims in the clear and proves they were minted
here; revocation is still decided server-side by looking up the embedded
``jti`` (see ``tenantcore.tokens``).

Backends:
- ``UnsignedBackend`` — encodes claims without a signature (dev/test only).
- ``HmacBackend`` — HMAC-SHA256 over the encoded payload with a shared secret.

Wire format:
    kid.payload_b64.signature_b64   (3 parts, always; url-safe base64, no padding)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .config import SecurityConfig

logger = logging.getLogger(__name__)

WIRE_SEPARATOR = "."


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def looks_signed(token_str: str) -> bool:
    """Cheap format check: signed tokens always have three dot-separated parts."""
    return token_str.count(WIRE_SEPARATOR) == 2


# =========================================
# Data types
# =========================================


@dataclass(frozen=True)
class SignedPayload:
    """Result of a signing operation.

    Attributes:
        payload: url-safe base64 of the claims JSON.
        signature: url-safe base64 signature (empty = unsigned).
        kid: key identifier, kept for key rotation.
        algorithm: "none" or "hmac".
    """

    payload: str
    signature: str
    kid: str
    algorithm: str

    def serialize(self) -> str:
        return WIRE_SEPARATOR.join((self.kid, self.payload, self.signature))


def encode_claims(claims: dict[str, Any]) -> bytes:
    return json.dumps(claims, separators=(",", ":"), sort_keys=True).encode()


def decode_claims(raw: Optional[bytes]) -> Optional[dict[str, Any]]:
    """Parse verified payload bytes; anything but a JSON object is rejected."""
    if raw is None:
        return None
    try:
        claims = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Signed token payload is not valid JSON")
        return None
    return claims if isinstance(claims, dict) else None


# =========================================
# Protocol
# =========================================


@runtime_checkable
class SigningBackend(Protocol):
    @property
    def algorithm(self) -> str: ...

    @property
    def active_kid(self) -> str: ...

    def sign(self, payload: bytes) -> SignedPayload: ...

    def verify(self, token_str: str) -> bytes | None:
        """Return the raw payload bytes, or None if the token does not verify."""
        ...


def _split(token_str: str) -> Optional[tuple[str, str, str]]:
    if not token_str or not looks_signed(token_str.strip()):
        return None
    kid, payload_b64, sig_b64 = token_str.strip().split(WIRE_SEPARATOR)
    return kid, payload_b64, sig_b64


# =========================================
# Unsigned mode
# =========================================


class UnsignedBackend:
    """Encodes claims without signing them.

    ⚠️ NOT for production use: anyone can mint a payload. Only the ``jti``
    lookup protects verification in this mode.
    """

    @property
    def algorithm(self) -> str:
        return "none"

    @property
    def active_kid(self) -> str:
        return "unsigned"

    def sign(self, payload: bytes) -> SignedPayload:
        return SignedPayload(payload=_b64encode(payload), signature="", kid=self.active_kid, algorithm="none")

    def verify(self, token_str: str) -> bytes | None:
        parts = _split(token_str)
        if parts is None:
            return None
        try:
            return _b64decode(parts[1])
        except (binascii.Error, ValueError):
            return None


# =========================================
# HMAC mode
# =========================================


class HmacBackend:
    """HMAC-SHA256 signing with a shared secret."""

    def __init__(self, shared_secret: str, kid: str = "hmac-001"):
        if not shared_secret:
            raise ConfigurationError("HmacBackend requires a shared_secret")
        if WIRE_SEPARATOR in kid:
            raise ConfigurationError(f"Signing key id must not contain {WIRE_SEPARATOR!r}", kid=kid)
        self._secret = shared_secret.encode()
        self._kid = kid

    @property
    def algorithm(self) -> str:
        return "hmac"

    @property
    def active_kid(self) -> str:
        return self._kid

    def _mac(self, kid: str, payload_b64: str) -> bytes:
        return hmac.new(self._secret, f"{kid}.{payload_b64}".encode(), hashlib.sha256).digest()

    def sign(self, payload: bytes) -> SignedPayload:
        payload_b64 = _b64encode(payload)
        return SignedPayload(
            payload=payload_b64,
            signature=_b64encode(self._mac(self._kid, payload_b64)),
            kid=self._kid,
            algorithm=self.algorithm,
        )

    def verify(self, token_str: str) -> bytes | None:
        parts = _split(token_str)
        if parts is None:
            return None
        kid, payload_b64, sig_b64 = parts
        if not sig_b64 or kid != self._kid:
            logger.warning("Signed token rejected: unknown key id or missing signature")
            return None
        try:
            actual_sig = _b64decode(sig_b64)
            if not hmac.compare_digest(self._mac(kid, payload_b64), actual_sig):
                logger.warning("HMAC signature verification failed")
                return None
            return _b64decode(payload_b64)
        except (binascii.Error, ValueError):
            logger.warning("Signed token is not valid base64")
            return None


# =========================================
# Factory
# =========================================


def get_signing_backend(config: SecurityConfig | None = None) -> SigningBackend:
    """Build the backend named by ``config.signing_backend``.

    ``hmac`` without a shared secret is a configuration error: the core
    refuses to silently downgrade to unsigned tokens.
    """
    if config is None:
        return UnsignedBackend()

    backend_type = getattr(config.signing_backend, "value", str(config.signing_backend))
    if backend_type == "hmac":
        if not config.shared_secret:
            error_msg = "HMAC backend enabled (SIGNING_BACKEND=hmac) but SIGNING_SHARED_SECRET is not set."
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)
        return HmacBackend(shared_secret=config.shared_secret, kid=config.signing_key_id)
    if backend_type == "unsigned":
        logger.warning("Signed tokens are NOT cryptographically signed (SIGNING_BACKEND=unsigned)")
        return UnsignedBackend()
    raise ConfigurationError(f"Unknown signing backend: {backend_type!r}")


__all__ = [
    "HmacBackend",
    "SignedPayload",
    "SigningBackend",
    "UnsignedBackend",
    "decode_claims",
    "encode_claims",
    "get_signing_backend",
    "looks_signed",
]
