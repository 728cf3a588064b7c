from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import AbstractContextManager, contextmanager, suppress

from fastapi import HTTPException
from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from run_tracker.config.settings import settings
from run_tracker.errors import RunTrackerError

SessionFactory = Callable[[], AbstractContextManager[Session]]

# Lazy initialization to avoid import-time database connections
_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _get_engine() -> Engine:
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        logger.info(f"Initializing database engine: {settings.database_url}")

        connect_args = {}
        if "sqlite" in settings.database_url.lower():
            connect_args = {"check_same_thread": False}
            logger.warning("Using SQLite database (local development only)")
        else:
            connect_args = {
                "connect_timeout": 10,
                "application_name": "run-tracker",
            }

        _engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            echo=False,
            pool_pre_ping=True,  # Verify connections before using (important for cloud DBs)
            pool_recycle=3600,
        )
        logger.info("Database engine initialized")
    return _engine


def get_engine() -> Engine:
    """Get or create the database engine (public API)."""
    return _get_engine()


def _get_session_local() -> sessionmaker[Session]:
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


def check_database_connection() -> None:
    """Test database connection on startup."""
    try:
        with _get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection test successful")
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        raise


def _handle_session_commit(session: Session) -> None:
    """Commit the open transaction, including changes already flushed.

    Skips the round trip when nothing ran in the scope or the work already
    committed (the ledger commits its own appends).
    """
    if session.in_transaction():
        with suppress(Exception):
            logger.debug(f"Committing session: dirty={len(session.dirty)}, new={len(session.new)}, deleted={len(session.deleted)}")
        session.commit()
    else:
        with suppress(Exception):
            logger.debug("No transaction in progress, skipping commit")


def session_context(factory: sessionmaker[Session]) -> SessionFactory:
    """Build a get_session-style context manager around a session factory.

    Components take a SessionFactory so tests can bind them to an isolated engine.
    """

    @contextmanager
    def _session_scope() -> Generator[Session, None, None]:
        session = factory()
        try:
            yield session
            _handle_session_commit(session)
        except HTTPException:
            logger.debug("HTTPException in session, rolling back")
            session.rollback()
            raise
        except RunTrackerError as e:
            logger.debug(f"{type(e).__name__} in session, rolling back (domain error, not DB error)")
            session.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Database session error, rolling back: {e}. "
                f"Error type: {type(e).__name__}, session state: "
                f"dirty={len(session.dirty)}, new={len(session.new)}, deleted={len(session.deleted)}"
            )
            session.rollback()
            raise
        finally:
            session.close()

    return _session_scope


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get database session context manager bound to the configured database.

    Commits on success, rolls back on any exception. FastAPI routes receive
    it through run_tracker.api.dependencies.services.get_session_factory.
    """
    with session_context(_get_session_local())() as session:
        yield session
