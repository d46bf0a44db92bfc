"""
TRIALBYTE - Database Connection Manager
=======================================
Engine, session and startup-connection handling for the trial store.

PostgreSQL runs on a pre-pinged QueuePool shared by the fan-out readers.
SQLite URLs are accepted for local runs and tests; foreign keys are
switched on for every SQLite connection so user_activity behaves as on
PostgreSQL.
"""

import time
import logging
from typing import Any, Callable, Dict, Optional, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .config import DatabaseConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Owns the engine and hands out sessions.

    The engine is created lazily on first use, so constructing a manager
    never touches the network. Call ``connect_with_retry`` at startup to
    fail fast when the database is unreachable.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = False

    def _engine_options(self) -> Dict[str, Any]:
        if self.config.is_sqlite:
            return {"connect_args": {"check_same_thread": False}}
        return {
            "poolclass": QueuePool,
            "pool_size": self.config.pool_size,
            "max_overflow": self.config.max_overflow,
            "pool_timeout": self.config.pool_timeout,
            "pool_recycle": self.config.pool_recycle,
            "pool_pre_ping": True,
        }

    def initialize(self) -> None:
        """Build the engine and session factory (idempotent)."""
        if self._initialized:
            return

        try:
            engine = create_engine(
                self.config.connection_url, echo=self.config.echo, **self._engine_options()
            )
        except Exception as e:
            logger.error(f"Could not create engine for {self.config.display_name}: {e}")
            raise

        if self.config.is_sqlite:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        self._engine = engine
        # Rows are turned into dicts after commit, so keep attributes loaded
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self._initialized = True
        logger.info(f"Engine created for {self.config.display_name}")

    @property
    def engine(self) -> Engine:
        self.initialize()
        return self._engine

    def connect_with_retry(self, max_retries: int = 5, initial_delay: float = 2.0,
                           sleep: Callable[[float], None] = time.sleep) -> None:
        """
        Block until ``SELECT 1`` succeeds.

        After failed attempt n the next attempt waits ``initial_delay * n``
        seconds. When the last attempt fails its error is re-raised.

        Args:
            max_retries: Number of attempts
            initial_delay: Base delay in seconds
            sleep: Called with each delay
        """
        for attempt in range(1, max_retries + 1):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            except Exception as e:
                logger.error(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
                if attempt == max_retries:
                    logger.error(f"Giving up on {self.config.display_name} after {max_retries} attempts")
                    raise
                delay = initial_delay * attempt
                logger.info(f"Next connection attempt in {delay:.1f}s")
                sleep(delay)
            else:
                logger.info(f"Database reachable: {self.config.display_name}")
                return

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Transactional session: commits on exit, rolls back on error.

        Usage:
            with db_manager.session() as session:
                session.add(TrialOverview(title="..."))
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Rolled back session: {e}")
            raise
        finally:
            session.close()

    def get_session(self) -> Session:
        """Unmanaged session; the caller commits and closes it."""
        self.initialize()
        return self._session_factory()

    def health_check(self) -> bool:
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
        return True

    def close(self) -> None:
        """Dispose of pooled connections; the next use re-initializes."""
        if self._engine is not None:
            self._engine.dispose()
            self._initialized = False
            logger.info(f"Disposed engine for {self.config.display_name}")

    def create_tables(self, drop_existing: bool = False) -> None:
        """
        Create every mapped table that does not exist yet.

        Args:
            drop_existing: Drop all mapped tables first
        """
        from .models import Base

        if drop_existing:
            Base.metadata.drop_all(self.engine)
            logger.warning("Dropped all trial tables")

        Base.metadata.create_all(self.engine)
        logger.info(f"Ensured {len(Base.metadata.tables)} tables exist")


# Process-wide manager used by the API
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseManager()
        _db_manager.initialize()

    return _db_manager


def reset_db_manager() -> None:
    """Dispose of and forget the process-wide manager."""
    global _db_manager

    if _db_manager is not None:
        _db_manager.close()
        _db_manager = None
