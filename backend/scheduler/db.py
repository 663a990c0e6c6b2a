from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from scheduler.core.config import settings
from scheduler.models import StoredDocument  # noqa: F401  (registers the table)


def _use_immediate_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own SQLite transaction boundaries.

    pysqlite's own BEGIN is deferred, so two commits can both pass their
    version checks before either takes the write lock.  Connections opened with
    the ``sqlite_immediate`` execution option start with ``BEGIN IMMEDIATE``
    instead; every other connection runs in autocommit and holds no lock
    between statements.
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        if conn.get_execution_options().get("sqlite_immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str | None = None) -> Engine:
    url = database_url or settings.DATABASE_URL
    connect_args = {}
    kwargs = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # Keep one shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, connect_args=connect_args, **kwargs)
    if url.startswith("sqlite"):
        _use_immediate_transactions(engine)
    return engine


def init_db(bind: Engine) -> None:
    """Create database tables in environments without migrations."""
    SQLModel.metadata.create_all(bind=bind)
