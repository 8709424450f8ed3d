"""Database session management and transaction helpers.

Provides:
- Request-scoped database sessions via get_db() dependency
- session_scope() for work that outlives the request (SSE generators)
- Transaction context manager that maps driver failures onto API errors
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from euroassist.db.engine import get_engine
from euroassist.errors import ConstraintViolationError, StorageError
from euroassist.logging import get_logger

logger = get_logger(__name__)


def create_session_factory(engine: Any = None) -> sessionmaker[Session]:
    """Create a session factory bound to an engine.

    Args:
        engine: SQLAlchemy engine. If None, uses the default engine.

    Returns:
        Configured sessionmaker instance.
    """
    if engine is None:
        engine = get_engine()

    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# Default session factory - created lazily
_SessionLocal: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    Yields:
        A database session that is automatically closed after use.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory: Callable[[], Session] | None = None) -> Generator[Session, None, None]:
    """Open a standalone session and close it on exit.

    Streaming responses keep running after the request-scoped session from
    get_db() has been closed, so they open their own through this helper.
    """
    db = (factory or get_session_factory())()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Context manager for database transactions.

    Commits on success, rolls back on exception.

    Raises:
        ConstraintViolationError: A unique/foreign-key/check constraint rejected the write.
        StorageError: Any other database failure (connectivity, bad SQL).
        Other exceptions are re-raised unchanged after rollback.

    Usage:
        with transaction(db):
            db.add(...)
            db.add(...)
        # Committed if no exception
    """
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("db.constraint_violation", error_type=type(exc.orig).__name__)
        raise ConstraintViolationError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("db.transaction_failed", error_type=type(exc).__name__)
        raise StorageError() from exc
    except Exception:
        db.rollback()
        raise
