"""
Module: deadline_kernel.db.engine
Responsibility: Process-wide engine and session factory for the task store,
    plus a commit-or-rollback session scope for scripts and batch entry
    points.
Architecture position: Kernel > DB.  Imports db/base.py and, lazily, the
    model modules so their tables are registered before create_tables().

Invariants enforced:
    - One engine per process; init_engine_from_url() replaces it.
    - SQLite (file or in-memory) and server URLs are both accepted.  An
      in-memory SQLite URL is pinned to one connection (StaticPool) so the
      runner's worker sessions share a database.
    - SQLite connections let SQLAlchemy emit BEGIN, so SAVEPOINTs used by
      the task store nest inside the outer transaction.
    - Sessions are created with expire_on_commit=False; returned rows stay
      readable after the batch commits.

Failure modes:
    - RuntimeError from every accessor before init_engine_from_url().
    - sqlalchemy.exc.OperationalError on first use when the server is down;
      the store layer maps it to StoreUnavailableError.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from deadline_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Task store engine not initialized; call init_engine_from_url() first"


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Hand transaction control from pysqlite to SQLAlchemy.

    pysqlite opens its implicit transaction only at the first DML
    statement, so a SAVEPOINT issued earlier starts a transaction of its
    own and its RELEASE commits.
    """

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _sqlite_options(url: URL) -> dict[str, Any]:
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


def _server_options(pool_size: int, max_overflow: int, pool_timeout: int) -> dict[str, Any]:
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    ``pool_size`` should cover the runner's ``max_workers`` plus the status
    refresher; the pool arguments are ignored for SQLite.

    Args:
        database_url: ``sqlite:///tasks.db``, ``sqlite://`` or a
            ``postgresql://`` URL (needs the ``postgres`` extra).
    """
    global _engine, _session_factory

    reset_engine()
    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        engine = create_engine(url, echo=echo, **_sqlite_options(url))
        enable_sqlite_savepoints(engine)
    else:
        engine = create_engine(url, echo=echo, **_server_options(pool_size, max_overflow, pool_timeout))

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "backend": backend,
            "database": url.render_as_string(hide_password=True),
            "pool_size": None if backend == "sqlite" else pool_size,
        },
    )
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory handed to GenerationRunner and StatusRefresher; one session per unit of work."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on success, roll back and re-raise on any exception, always close.

    Services only flush; this is one of the places that commits.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from deadline_kernel.db.base import Base
    import deadline_kernel.models  # noqa: F401  (registers tables)

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the current engine, if any, and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
