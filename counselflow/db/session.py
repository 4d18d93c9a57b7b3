"""
Database Session Management
===========================

SQLAlchemy connection handling.

The engine and session factory live on an explicitly constructed ``Database``
object. The application creates one at startup, disposes it at shutdown and
hands it to request handlers through a FastAPI dependency.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine_for_url(database_url: str, echo: bool = False, connect_timeout: int = 5) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        connect_args={"connect_timeout": connect_timeout},
        echo=echo,
    )


class Database:
    """
    Persistence handle: one engine plus its session factory.

    Usage:
        database = Database("sqlite:///./dev.db")
        database.init_schema()
        with database.session() as db:
            db.query(Contract).all()
        database.close()
    """

    def __init__(self, database_url: str, echo: bool = False, connect_timeout: int = 5):
        self.url = database_url
        self.engine = _create_engine_for_url(database_url, echo=echo, connect_timeout=connect_timeout)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.sql_echo,
            connect_timeout=settings.db_connect_timeout,
        )

    def init_schema(self) -> None:
        """Create all tables that do not exist yet"""
        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        """Drop all tables (use with caution!)"""
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for a unit of work.

        Commits on success, rolls back on any exception and always closes.
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    def close(self) -> None:
        """Release pooled connections"""
        self.engine.dispose()
        logger.info("Database engine disposed")
