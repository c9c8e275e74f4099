"""
core/database.py -- Shared SQLAlchemy engine setup and schema metadata.

Every store module declares its tables on the single `metadata` object defined
here so that init_db() can create the whole schema in one call and foreign
keys between components (task -> task_status, task -> users) resolve.

SQLAlchemy Core (not ORM) is used throughout: dataclasses in */models.py stay
the authoritative domain representation and row mappers translate rows.
Swapping SQLite for PostgreSQL is a connection string change.

Layer rule: core/ is the kernel. No imports from api/, auth/, cache/,
components/, or milestone/.
"""

from pathlib import Path

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine

DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'aionic.db'}"

metadata = MetaData()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str = "") -> Engine:
    """Create an engine for db_url (empty string -> the default SQLite file)."""
    db_url = db_url or DEFAULT_DB_URL
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def init_db(engine: Engine) -> None:
    """Create every table registered on the shared metadata.

    Importing the store modules registers their tables; callers must have
    imported them before this runs (api/main.py does).
    """
    metadata.create_all(engine)
