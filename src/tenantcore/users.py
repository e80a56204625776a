"""User directory.

Password hashing happens outside the core: this module only stores the
hash it is given. Any change that should end existing sessions (status
leaving ``active``, a new password) revokes every token of the user in the
same transaction.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .exceptions import ConflictError, NotFoundError, ValidationError
from .records import UserInfo, UserStatus
from .storage import Database, Token, User

logger = logging.getLogger(__name__)


def get_user_row(session: Session, user_id: str) -> User:
    row = session.get(User, user_id)
    if row is None:
        raise NotFoundError(f"User {user_id} not found", user_id=user_id)
    return row


def _revoke_tokens(session: Session, user_id: str) -> int:
    result = session.execute(delete(Token).where(Token.user_id == user_id))
    return result.rowcount or 0


class UserDirectory:
    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self,
        name: str,
        username: str,
        email: str,
        password_hash: str,
        status: Union[UserStatus, str] = UserStatus.ACTIVE,
    ) -> UserInfo:
        """Register a user.

        Raises:
            ValidationError: empty username/email or unknown status.
            ConflictError: username or email already taken.
        """
        status = self._coerce_status(status)
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email:
            raise ValidationError("Username and email are required")
        if not password_hash:
            raise ValidationError("A password hash is required")

        with self._db.transaction() as session:
            if session.scalar(select(User.id).where(User.username == username)):
                raise ConflictError("Username already taken", username=username)
            if session.scalar(select(User.id).where(User.email == email)):
                raise ConflictError("Email already registered", email=email)

            row = User(
                name=(name or username).strip(),
                username=username,
                email=email,
                password_hash=password_hash,
                status=status.value,
            )
            session.add(row)
            session.flush()
            logger.info("Created user %s (%s)", username, row.id)
            return UserInfo.from_row(row)

    def get(self, user_id: str) -> UserInfo:
        with self._db.transaction() as session:
            return UserInfo.from_row(get_user_row(session, user_id))

    def find_by_username(self, username: str) -> Optional[UserInfo]:
        with self._db.transaction() as session:
            row = session.scalars(select(User).where(User.username == username)).first()
            return UserInfo.from_row(row) if row else None

    def find_by_email(self, email: str) -> Optional[UserInfo]:
        with self._db.transaction() as session:
            row = session.scalars(select(User).where(User.email == email.strip().lower())).first()
            return UserInfo.from_row(row) if row else None

    def set_status(self, user_id: str, status: Union[UserStatus, str]) -> UserInfo:
        """Change a user's status; leaving ``active`` revokes all their tokens."""
        status = self._coerce_status(status)
        with self._db.transaction() as session:
            row = get_user_row(session, user_id)
            row.status = status.value
            if status != UserStatus.ACTIVE:
                revoked = _revoke_tokens(session, user_id)
                logger.info("User %s set to %s; revoked %d token(s)", user_id, status.value, revoked)
            session.flush()
            return UserInfo.from_row(row)

    def set_password_hash(self, user_id: str, password_hash: str) -> UserInfo:
        if not password_hash:
            raise ValidationError("A password hash is required")
        with self._db.transaction() as session:
            row = get_user_row(session, user_id)
            row.password_hash = password_hash
            revoked = _revoke_tokens(session, user_id)
            logger.info("Password changed for user %s; revoked %d token(s)", user_id, revoked)
            session.flush()
            return UserInfo.from_row(row)

    def delete(self, user_id: str) -> None:
        """Delete a user; assignments and tokens cascade."""
        with self._db.transaction() as session:
            row = get_user_row(session, user_id)
            session.delete(row)
            logger.info("Deleted user %s (%s)", row.username, user_id)

    @staticmethod
    def _coerce_status(status: Union[UserStatus, str]) -> UserStatus:
        try:
            return UserStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown user status: {status!r}", status=status) from e


__all__ = ["UserDirectory", "get_user_row"]
