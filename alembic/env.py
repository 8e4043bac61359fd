"""Alembic environment for the giftshuffle schema.

The database URL comes from :func:`giftshuffle.config.get_settings` (``DB_URL``
in the environment or ``.env``). ``alembic -x db_url=...`` overrides it for
one-off runs against another database.
"""

from __future__ import annotations

from logging.config import fileConfig
from pathlib import Path

from alembic import context

from giftshuffle.config import get_settings
from giftshuffle.db.engine import DEFAULT_SQLITE_URL, make_engine
from giftshuffle.db.utils import resolve_sqlite_url
from giftshuffle.models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    url = override or get_settings().db_url
    if not url:
        return DEFAULT_SQLITE_URL
    return resolve_sqlite_url(url, PROJECT_ROOT)


def _configure_kwargs(dialect_name: str) -> dict:
    # SQLite cannot ALTER constraints in place; batch mode rebuilds the table.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without connecting."""
    url = _database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url.split(":", 1)[0].split("+", 1)[0]),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply the migrations over a live connection."""
    engine = make_engine(database_url=_database_url())
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection, **_configure_kwargs(connection.dialect.name)
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
