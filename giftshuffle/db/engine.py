from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .metadata import metadata_obj  # noqa: F401

from pathlib import Path
from typing import Optional

from ..config import get_settings
from .utils import resolve_sqlite_url

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    get_settings().db_url or "sqlite:///./dev.db", ROOT_DIR
)


def make_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    lock_timeout: Optional[float] = None,
):
    """Create an engine for ``database_url`` (defaults to the configured URL).

    SQLite connections get foreign keys enforced and a busy timeout equal to
    ``lock_timeout`` so that concurrent draws wait a bounded time for the
    database write lock instead of failing immediately. MySQL connections get
    the same bound through ``innodb_lock_wait_timeout``.
    """
    url = database_url or DEFAULT_SQLITE_URL
    if lock_timeout is None:
        lock_timeout = get_settings().lock_timeout_seconds

    connect_args = {}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = {"timeout": lock_timeout, "check_same_thread": False}

    engine = create_engine(
        url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )
    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    elif engine.dialect.name in ("mysql", "mariadb"):
        wait_seconds = max(1, int(lock_timeout))

        # Connection scoped; every pooled connection carries the same bound.
        @event.listens_for(engine, "connect")
        def _set_mysql_lock_wait(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute(f"SET SESSION innodb_lock_wait_timeout = {wait_seconds}")
            cursor.close()

    return engine


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Keep objects accessible after commit for polling payloads
        future=True,
    )
