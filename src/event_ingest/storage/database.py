"""
Database engine and session factory.

PostgreSQL (psycopg2) is the production target; SQLite is supported for
local runs and tests.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from event_ingest.configs.settings import Settings
from event_ingest.storage.models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite connections.

    pysqlite's implicit transaction handling breaks SAVEPOINT, which the
    ingestion engine relies on to isolate a failing record.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str, *, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        url: Database URL
        echo: Log emitted SQL

    Returns:
        Configured Engine
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)

    logger.debug(f"Created database engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Build the session factory used by ingestion runs.

    Objects stay readable after commit so that cached reference rows remain
    usable once the session releases them.
    """
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


def init_schema(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ready")


def engine_from_settings(settings: Settings) -> Engine:
    """Create an engine from explicit settings."""
    return create_db_engine(settings.sqlalchemy_url, echo=settings.DATABASE_ECHO)
