"""
Database session management for the Book Club API.

This module provides connection management and session handling for SQLAlchemy.
The web layer relies on it for:

1. Thread Safety: FastAPI runs synchronous routes in a worker thread pool
2. Transaction Management: lifecycle operations commit atomically
3. Connection Pooling: one engine per application instance
4. Error Recovery: SQLAlchemy failures surface as repository exceptions

Sessions are short-lived (one per HTTP request) and always closed.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Seconds a file-database writer waits for another transaction to release the lock
SQLITE_BUSY_TIMEOUT_SECONDS = 30


class DatabaseError(Exception):
    """Raised when a query or commit fails at the storage layer."""


class DatabaseManager:
    """
    Owns the engine and session factory for one application instance.

    Created once by the application factory and disposed by its shutdown hook.
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured one.
        """
        if database_url is None:
            database_url = get_config().get_database_url()
            logger.info("Using database at: %s", database_url)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        An in-memory SQLite database lives inside a single connection, so it
        gets a StaticPool shared by every session. File databases get a pool
        of separate connections: each request session runs its own
        transaction and waits on SQLite's lock instead of sharing one.
        """
        if self._engine is None:
            url = make_url(self.database_url)
            if url.get_backend_name() == "sqlite":
                if url.database in (None, "", ":memory:"):
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                        echo=False,
                    )
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args={
                            "check_same_thread": False,
                            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
                        },
                        echo=False,
                    )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session. Callers are responsible for closing it."""
        return self.session_factory()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Create all tables.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Return True if a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Dispose of the engine. Called from the application shutdown hook."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, rolling back and re-raising as DatabaseError on failure.

    IntegrityError is re-raised unchanged so callers can map it to a
    duplicate-key error.
    """
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise DatabaseError(f"Database operation '{operation}' failed: {e!s}") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, converting SQLAlchemy failures into DatabaseError.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Error message prefix

    Returns:
        Query result
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise DatabaseError(f"{error_msg}: Database query failed") from e
