"""
Database engine/session management.

`create_store_engine()` builds an engine for any supported dialect; `init_store()`
applies the text encoding settings and creates the schema together with the
order-total triggers. The module-level engine and `SessionLocal` are what the
FastAPI app uses by default; tests override `get_db`.
"""

from __future__ import annotations

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ecommerce_store.db import models  # noqa: F401  (registers tables on Base.metadata)
from ecommerce_store.db.base import Base
from ecommerce_store.db.config import StoreSettings, load_settings

logger = logging.getLogger(__name__)


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    # pysqlite would defer BEGIN until the first write; transactions are begun by
    # _begin_immediate instead.
    dbapi_connection.isolation_level = None

    # SQLite ignores FOREIGN KEY clauses unless this is set on every connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(conn) -> None:
    # Take the database write lock before the first read, so a locked
    # read-aggregate-write sequence cannot interleave with another writer.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


# PUBLIC_INTERFACE
def create_store_engine(settings: StoreSettings, **engine_kwargs) -> Engine:
    """
    Create an engine configured for the store.

    Args:
        settings: Store settings (URL, charset, echo).
        **engine_kwargs: Extra arguments forwarded to `create_engine` (e.g. poolclass).

    Returns:
        Engine: a SQLAlchemy engine with referential integrity enforced.
    """
    url = settings.database_url
    connect_args = dict(engine_kwargs.pop("connect_args", {}))

    if url.startswith("mysql"):
        connect_args.setdefault("charset", settings.charset)
    elif url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(
        url,
        pool_pre_ping=True,
        echo=settings.echo_sql,
        connect_args=connect_args,
        **engine_kwargs,
    )

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "begin", _begin_immediate)

    logger.debug("Created engine for dialect %s", engine.dialect.name)
    return engine


# PUBLIC_INTERFACE
def init_store(engine: Engine, settings: Optional[StoreSettings] = None) -> None:
    """
    Create the schema (tables, constraints, indexes, order-total triggers).

    On MySQL the database default charset/collation is set first so every table
    created afterwards inherits it.
    """
    settings = settings or StoreSettings()

    if engine.dialect.name == "mysql" and engine.url.database:
        with engine.begin() as conn:
            conn.execute(
                text(
                    f"ALTER DATABASE `{engine.url.database}` "
                    f"CHARACTER SET = {settings.charset} COLLATE = {settings.collation}"
                )
            )
        logger.info("Applied charset %s / collation %s", settings.charset, settings.collation)

    Base.metadata.create_all(bind=engine)
    logger.info("Store schema ready on %s", engine.dialect.name)


# Global engine/sessionmaker for dependency injection.
SETTINGS = load_settings()

_engine: Engine = create_store_engine(SETTINGS)

SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)


# PUBLIC_INTERFACE
def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a SQLAlchemy session and ensures it's closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# PUBLIC_INTERFACE
def db_healthcheck() -> bool:
    """
    Perform a simple DB liveness check.

    Returns:
        bool: True if DB is reachable and responds to `SELECT 1`, else False.
    """
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Database healthcheck failed", exc_info=True)
        return False


# PUBLIC_INTERFACE
def init_default_store() -> None:
    """Initialize the schema on the engine configured from the environment."""
    init_store(_engine, SETTINGS)
