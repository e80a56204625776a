"""Engine, session factory and transactional boundary.

Every core operation runs inside exactly one ``Database.transaction()``: a
raised error rolls the whole operation back, and the configured isolation
level keeps readers from seeing a half-rewritten namespace subtree.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from ..exceptions import InconsistentError, StorageError, TenantCoreError
from .models import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """Owns the SQLAlchemy engine and hands out transactional sessions."""

    def __init__(self, config: DatabaseConfig | None = None) -> None:
        self._config = config or DatabaseConfig()
        self._lock = None
        url = self._config.url
        kwargs: dict = {
            "echo": self._config.echo,
            "isolation_level": self._config.isolation_level,
        }
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                kwargs["poolclass"] = StaticPool
                # one shared connection: transactions from different threads must not interleave
                self._lock = threading.RLock()
            # SQLite only knows SERIALIZABLE and READ UNCOMMITTED
            kwargs["isolation_level"] = "SERIALIZABLE"
        else:
            kwargs["pool_pre_ping"] = True

        self.engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session; commit on success, roll back on any exception.

        Storage-level constraint violations surfacing at commit are integrity
        failures of the core's pre-checks and are reported as
        ``InconsistentError``.

        In-memory SQLite shares one connection across threads, so there
        transactions are serialized.
        """
        with self._lock or nullcontext():
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except TenantCoreError:
                session.rollback()
                raise
            except IntegrityError as e:
                session.rollback()
                logger.error("Storage constraint violated: %s", e.orig)
                raise InconsistentError(f"Storage constraint violated: {e.orig}") from e
            except OperationalError as e:
                session.rollback()
                logger.error("Storage operation failed: %s", e.orig)
                raise StorageError(f"Storage operation failed: {e.orig}") from e
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


__all__ = ["Database"]
