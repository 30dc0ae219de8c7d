"""
SQLAlchemy engine and session management for the feed pipeline database.
"""

from contextlib import contextmanager
import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import get_storage_settings
from utils.exceptions import StorageError

logger = logging.getLogger(__name__)

# Module-level engine instance (lazy-initialized)
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Get the SQLAlchemy engine, creating it from settings if necessary."""
    global _engine, _session_factory
    if _engine is None:
        settings = get_storage_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(settings.database_url, echo=settings.echo, connect_args=connect_args)
        _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
        logger.info("Database engine created for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def set_engine(engine: Engine) -> None:
    """Set a custom engine (for testing)."""
    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)


def reset_engine() -> None:
    """Reset the engine to None (for testing)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    from .orm_models import Base

    target = engine or get_engine()
    Base.metadata.create_all(target)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get a session context manager for database operations.

    Usage:
        with get_session() as session:
            session.add(obj)
            # commit happens automatically on successful exit
    """
    if _session_factory is None:
        get_engine()

    session = _session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageError("database operation failed", {"error": str(exc)}) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
