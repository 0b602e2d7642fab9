"""Database setup and session utilities for SQLAlchemy.

This module centralizes engine/session initialization, metadata base, and helpers:
- create_session_factory: Builds an engine + sessionmaker for a database URL and
  creates the document tables if missing.
- session_scope: Context-managed transactional scope for imperative workflows.

The default URL comes from docintel.config.settings.DATABASE_URL; SQLite URLs get
their parent directory created and cross-thread access enabled, since store calls
run in worker threads.
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    """Create an engine for database_url, ensure tables exist, and return a sessionmaker.

    This function is idempotent and safe to run multiple times.

    Args:
        database_url: SQLAlchemy URL (e.g. sqlite:///./data/docintel.db or postgresql+psycopg2://...).

    Returns:
        sessionmaker: Factory bound to the new engine.
    """
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, pool_pre_ping=True, future=True, connect_args=connect_args)

    # Import models after Base is defined
    from docintel import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine, future=True)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    Yields:
        Session: A SQLAlchemy session from the given factory.

    Notes:
        - Commits on successful exit.
        - Rolls back and re-raises on exception.
        - Always closes the session at the end.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
