"""
Module: kiosk_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  MUST NOT import from services/, selectors/ or domain/.

Invariants enforced:
    - PostgreSQL and SQLite are supported.  In-memory SQLite uses a
      StaticPool so every session sees the same database.
    - Every connection attempt is bounded by ``timeout_seconds``.
    - Immutability listeners are registered whenever an engine is built.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory are called
      before init_engine_from_url().
    - OperationalError when the store is unreachable; callers wrap this in
      the retry policy.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kiosk_kernel.db.immutability import register_immutability_listeners
from kiosk_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    timeout_seconds: float = 5.0,
    pool_size: int = 5,
    max_overflow: int = 5,
) -> Engine:
    """
    Build an engine without touching module state.

    Args:
        database_url: SQLAlchemy URL (``postgresql://...`` or ``sqlite://``).
        echo: If True, log all SQL statements.
        timeout_seconds: Upper bound for acquiring a connection or lock.
        pool_size: Connections kept in the pool (server backends only).
        max_overflow: Connections allowed beyond pool_size.
    """
    url = make_url(database_url)
    options: dict[str, Any] = {"echo": echo}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": timeout_seconds,
        }
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        options.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=timeout_seconds,
        )
        if url.get_backend_name() == "postgresql":
            timeout_ms = int(timeout_seconds * 1000)
            options["connect_args"] = {
                "connect_timeout": max(1, int(timeout_seconds)),
                "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
            }

    engine = create_engine(database_url, **options)

    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    register_immutability_listeners()
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    timeout_seconds: float = 5.0,
    pool_size: int = 5,
    max_overflow: int = 5,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: All subsequent get_engine/get_session calls use this
        engine.  A second call replaces the first.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        timeout_seconds=timeout_seconds,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "timeout_seconds": timeout_seconds,
            "echo": echo,
        },
    )

    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed and the exception
        is re-raised to the caller.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = (factory or get_session_factory())()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back")
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all kiosk tables.

    Postconditions: kiosk_sessions and kiosk_transactions exist.
    """
    from kiosk_kernel.db.base import Base
    import kiosk_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from kiosk_kernel.db.base import Base
    import kiosk_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
