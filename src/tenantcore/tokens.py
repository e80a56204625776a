"""Session and API token lifecycle.

Three credential shapes share one ``tokens`` table:

- opaque session token: 32 random bytes, hex; only an HMAC-SHA256 of it
  (keyed by ``token_pepper``) is stored, so a database leak yields no
  usable credentials;
- opaque API token: same generator, stored raw so it can be shown again;
  this widens exposure and is logged as a warning on every issue;
- signed token: ``kid.payload.signature`` carrying ``{jti, sub, typ, exp}``;
  the ``jti`` must still match a live row issued through ``issue_signed``,
  so revocation is immediate. Without a signing backend this shape is
  refused unless ``allow_unsigned_tokens`` is set.

``verify`` fails closed: expired, revoked, unknown, malformed, or owned by
a user whose status is not ``active`` all yield ``None``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .config import SecurityConfig
from .exceptions import ConfigurationError, SecurityError, ValidationError
from .users import get_user_row
from .records import IssuedToken, SessionInfo, TokenType, UserStatus, VerifiedToken
from .signing import SigningBackend, decode_claims, encode_claims, get_signing_backend, looks_signed
from .storage import Database, Token, User, as_utc, new_id

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32

Clock = Callable[[], datetime]
TTL = Union[int, float, timedelta, None]


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Issues, verifies and revokes tokens bound to a user.

    Args:
        db: Storage holding users and tokens.
        config: Security settings; defaults to ``SecurityConfig()``.
        clock: Returns the current UTC time. Injected so expiry is testable.
        backend: Signing backend for signed tokens; built from ``config``
            when omitted.
    """

    def __init__(
        self,
        db: Database,
        config: Optional[SecurityConfig] = None,
        clock: Optional[Clock] = None,
        backend: Optional[SigningBackend] = None,
    ) -> None:
        self._db = db
        self._config = config or SecurityConfig()
        self._clock = clock or _utc_clock
        self._backend = backend or get_signing_backend(self._config)
        if not self._config.token_pepper:
            logger.warning("TOKEN_PEPPER is empty; session token hashes are unkeyed")

    @property
    def _signs(self) -> bool:
        """False when signed-format tokens would carry no real signature."""
        return self._backend.algorithm != "none" or self._config.allow_unsigned_tokens

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def hash_token(self, token: str) -> str:
        return hmac.new(self._config.token_pepper.encode(), token.encode(), hashlib.sha256).hexdigest()

    # ── Issuance ─────────────────────────────────────────────────

    def issue(
        self,
        user_id: str,
        type: Union[TokenType, str] = TokenType.SESSION,
        ttl: TTL = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedToken:
        """Issue an opaque token.

        Args:
            user_id: Owner; must exist and be active.
            type: ``session`` (stored hashed) or ``api`` (stored raw).
            ttl: Lifetime in seconds or as a ``timedelta``; defaults per type.

        Raises:
            NotFoundError: user does not exist.
            SecurityError: user is not active.
            ValidationError: unknown type or non-positive ttl.
        """
        token_type = self._coerce_type(type)
        lifetime = self._lifetime(token_type, ttl)
        credential = secrets.token_hex(TOKEN_BYTES)

        with self._db.transaction() as session:
            self._require_active_user(session, user_id)
            now = self._now()
            row = Token(
                user_id=user_id,
                type=token_type.value,
                jwt_id=new_id(),
                expires_at=now + lifetime,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now,
            )
            if token_type is TokenType.SESSION:
                row.token_hash = self.hash_token(credential)
                self._enforce_session_limit(session, user_id, now)
            else:
                row.token = credential
                logger.warning("API token for user %s is stored in raw form", user_id)
            session.add(row)
            session.flush()
            logger.info("Issued %s token %s for user %s", token_type.value, row.id, user_id)
            return IssuedToken(
                token=credential,
                token_id=row.id,
                jwt_id=row.jwt_id,
                type=token_type,
                user_id=user_id,
                expires_at=row.expires_at,
            )

    def issue_signed(
        self,
        user_id: str,
        type: Union[TokenType, str] = TokenType.SESSION,
        ttl: TTL = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedToken:
        """Issue a signed token whose ``jti`` points at a revocable row.

        Raises:
            ConfigurationError: the backend does not sign and
                ``allow_unsigned_tokens`` is off.
        """
        if not self._signs:
            raise ConfigurationError("Signed tokens need a signing backend (SIGNING_BACKEND=hmac)")
        token_type = self._coerce_type(type)
        lifetime = self._lifetime(token_type, ttl)

        with self._db.transaction() as session:
            self._require_active_user(session, user_id)
            now = self._now()
            row = Token(
                user_id=user_id,
                type=token_type.value,
                jwt_id=secrets.token_urlsafe(24),
                expires_at=now + lifetime,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now,
            )
            if token_type is TokenType.SESSION:
                self._enforce_session_limit(session, user_id, now)
            session.add(row)
            session.flush()

            claims = {
                "jti": row.jwt_id,
                "sub": user_id,
                "typ": token_type.value,
                "exp": int(row.expires_at.timestamp()),
            }
            signed = self._backend.sign(encode_claims(claims)).serialize()
            logger.info(
                "Issued signed %s token %s for user %s (kid=%s)",
                token_type.value,
                row.id,
                user_id,
                self._backend.active_kid,
            )
            return IssuedToken(
                token=signed,
                token_id=row.id,
                jwt_id=row.jwt_id,
                type=token_type,
                user_id=user_id,
                expires_at=row.expires_at,
            )

    # ── Verification ─────────────────────────────────────────────

    def verify(self, presented_token: Optional[str]) -> Optional[VerifiedToken]:
        """Resolve a presented credential to its owner, or ``None``."""
        if not presented_token or not presented_token.strip():
            return None
        presented_token = presented_token.strip()

        with self._db.transaction() as session:
            now = self._now()
            if looks_signed(presented_token):
                if not self._signs:
                    logger.warning("Signed-format token rejected: backend does not sign")
                    return None
                row = self._lookup_signed(session, presented_token, now)
            else:
                row = self._lookup_opaque(session, presented_token)
            if row is None:
                return None

            if as_utc(row.expires_at) <= now:
                logger.debug("Token %s rejected: expired", row.id)
                return None
            owner = session.get(User, row.user_id)
            if owner is None or owner.status != UserStatus.ACTIVE.value:
                logger.info("Token %s rejected: owner %s is not active", row.id, row.user_id)
                return None

            if self._config.touch_on_verify:
                row.last_used_at = now
            return VerifiedToken(user_id=row.user_id, token_id=row.id, type=TokenType(row.type))

    def _lookup_opaque(self, session: Session, presented: str) -> Optional[Token]:
        row = session.scalars(select(Token).where(Token.token_hash == self.hash_token(presented))).first()
        if row is None:
            row = session.scalars(
                select(Token).where(Token.token == presented, Token.type == TokenType.API.value)
            ).first()
        if row is None:
            logger.debug("Opaque token rejected: no matching record")
        return row

    def _lookup_signed(self, session: Session, presented: str, now: datetime) -> Optional[Token]:
        claims = decode_claims(self._backend.verify(presented))
        if claims is None:
            return None
        jti, sub, typ, exp = (claims.get(k) for k in ("jti", "sub", "typ", "exp"))
        if not isinstance(jti, str) or not isinstance(sub, str) or not isinstance(exp, (int, float)):
            logger.warning("Signed token rejected: malformed claims")
            return None
        if exp <= now.timestamp():
            logger.debug("Signed token %s rejected: expired claim", jti)
            return None

        row = session.scalars(
            select(Token).where(Token.jwt_id == jti, Token.token_hash.is_(None), Token.token.is_(None))
        ).first()
        if row is None:
            logger.debug("Signed token %s rejected: revoked or unknown", jti)
            return None
        if row.user_id != sub or row.type != typ:
            logger.warning("Signed token %s rejected: claims disagree with record", jti)
            return None
        return row

    # ── Revocation and bookkeeping ───────────────────────────────

    def revoke(self, token_id: str) -> bool:
        """Delete a token. Returns False if it did not exist."""
        with self._db.transaction() as session:
            row = session.get(Token, token_id)
            if row is None:
                return False
            session.delete(row)
            logger.info("Revoked token %s of user %s", token_id, row.user_id)
            return True

    def revoke_all(self, user_id: str) -> int:
        with self._db.transaction() as session:
            result = session.execute(delete(Token).where(Token.user_id == user_id))
            count = result.rowcount or 0
            logger.info("Revoked %d token(s) of user %s", count, user_id)
            return count

    def touch(self, token_id: str) -> bool:
        """Record use of a token. Advisory; returns False for unknown tokens."""
        with self._db.transaction() as session:
            row = session.get(Token, token_id)
            if row is None:
                return False
            row.last_used_at = self._now()
            return True

    def sessions_of(self, user_id: str, type: Union[TokenType, str, None] = None) -> list[SessionInfo]:
        """Live (unexpired) tokens of a user, newest first."""
        with self._db.transaction() as session:
            stmt = select(Token).where(Token.user_id == user_id, Token.expires_at > self._now())
            if type is not None:
                stmt = stmt.where(Token.type == self._coerce_type(type).value)
            rows = session.scalars(stmt.order_by(Token.created_at.desc(), Token.id)).all()
            return [
                SessionInfo(
                    token_id=r.id,
                    type=TokenType(r.type),
                    expires_at=as_utc(r.expires_at),
                    created_at=as_utc(r.created_at),
                    last_used_at=as_utc(r.last_used_at),
                    ip_address=r.ip_address,
                    user_agent=r.user_agent,
                )
                for r in rows
            ]

    def purge_expired(self) -> int:
        """Delete every expired token; returns the number removed."""
        with self._db.transaction() as session:
            result = session.execute(delete(Token).where(Token.expires_at <= self._now()))
            count = result.rowcount or 0
            if count:
                logger.info("Purged %d expired token(s)", count)
            return count

    # ── Internals ────────────────────────────────────────────────

    def _lifetime(self, token_type: TokenType, ttl: TTL) -> timedelta:
        if ttl is None:
            seconds = (
                self._config.session_ttl_seconds
                if token_type is TokenType.SESSION
                else self._config.api_ttl_seconds
            )
            return timedelta(seconds=seconds)
        lifetime = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        if lifetime <= timedelta(0):
            raise ValidationError("Token ttl must be positive", ttl=str(ttl))
        return lifetime

    def _enforce_session_limit(self, session: Session, user_id: str, now: datetime) -> None:
        """Evict the oldest live sessions so that one more fits under the cap."""
        limit = self._config.max_sessions_per_user
        if limit <= 0:
            return
        live = session.scalars(
            select(Token)
            .where(
                Token.user_id == user_id,
                Token.type == TokenType.SESSION.value,
                Token.expires_at > now,
            )
            .order_by(Token.created_at, Token.id)
        ).all()
        excess = len(live) - limit + 1
        for row in live[: max(excess, 0)]:
            session.delete(row)
            logger.info("Session limit reached for user %s; evicted token %s", user_id, row.id)

    @staticmethod
    def _require_active_user(session: Session, user_id: str) -> None:
        user = get_user_row(session, user_id)
        if user.status != UserStatus.ACTIVE.value:
            raise SecurityError("Cannot issue tokens for an inactive user", user_id=user_id)

    @staticmethod
    def _coerce_type(value: Union[TokenType, str]) -> TokenType:
        try:
            return TokenType(value)
        except ValueError as e:
            raise ValidationError(f"Unknown token type: {value!r}", type=value) from e


__all__ = ["TokenManager", "TOKEN_BYTES"]
