"""Database engine and helpers.

This module builds the SQLModel/SQLAlchemy engine and provides the
request-scoped session dependency. There is no module-level engine: the
application factory owns one engine per app instance (see
`agenda.main.create_app`), which lets tests run against isolated
in-memory databases.
"""

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

# Import models so that their tables are registered on SQLModel.metadata
from . import models  # noqa: F401


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine for `url`.

    SQLite connections are shared across threads (FastAPI runs sync
    handlers in a threadpool) and get foreign key enforcement switched on,
    which SQLite leaves off by default. In-memory SQLite uses a single
    static connection so every session sees the same database.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_and_tables(engine: Engine):
    """Create database tables using SQLModel metadata.

    Intended for local development, tests and the seed script; production
    deployments should rely on a proper migration tool instead.
    """
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """Yield a database `Session` for FastAPI dependency injection.

    The session is bound to the engine owned by the running application
    and is closed when the request scope finishes.
    """
    with Session(request.app.state.engine) as session:
        yield session
