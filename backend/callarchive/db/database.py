"""Database engine & session utilities.

Sync engine + classic session maker.  Every blocking call made through these
sessions is dispatched off the event loop by the callers.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Seconds a SQLite connection waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for ``database_url``.

    SQLite connections are shared between the ingest worker threads and the
    request thread pool, so same-thread checking is disabled and a busy timeout
    is set.  An in-memory SQLite database is pinned to a single connection,
    otherwise every pooled connection would see its own empty database.
    """
    logger.info("Creating database engine for %s", database_url.split('@')[-1])
    kwargs = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Return a configured session factory bound to ``engine``."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
