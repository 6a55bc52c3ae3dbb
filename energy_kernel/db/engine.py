"""
Module: energy_kernel.db.engine
Responsibility: Own the process-wide SQLAlchemy engine and session factory
    for the energy packages, and offer a commit-or-rollback scope.
Architecture position: Kernel > DB.  Imports db/base.py, and models/ only
    to register tables in create_tables().

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED; settlement rewrites take
      explicit row locks (SELECT ... FOR UPDATE) on top of that.
    - SQLite is accepted for local runs and tests.  All sessions share one
      connection (StaticPool) so an in-memory database is visible to each.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from energy_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _engine_options(url: URL, pool: dict[str, Any]) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"poolclass": QueuePool, "isolation_level": "READ COMMITTED", **pool}


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Pool arguments only apply to PostgreSQL.  Sessions do not expire
    attributes on commit, so DTOs can be built from rows after the
    transaction ends.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    _engine = create_engine(
        url,
        echo=echo,
        **_engine_options(
            url,
            {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": pool_pre_ping,
                "pool_timeout": pool_timeout,
                "pool_recycle": pool_recycle,
            },
        ),
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": url.get_backend_name(), "echo": echo},
    )
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session; the caller closes it."""
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The session factory, e.g. to open one session per worker thread."""
    return _require_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session that commits when the block exits normally.

    An exception rolls back, is logged and re-raised.  The session is
    closed either way.

    Usage:
        with session_scope() as session:
            session.add(fund)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every energy kernel table on the current engine."""
    from energy_kernel.db.base import Base
    import energy_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every energy kernel table. Tests only."""
    from energy_kernel.db.base import Base
    import energy_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
