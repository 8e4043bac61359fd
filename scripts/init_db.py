"""Bring the configured database up to date and list its tables.

Usage::

    python scripts/init_db.py                 # upgrade to head
    python scripts/init_db.py --revision 0001 # upgrade to a given revision
    python scripts/init_db.py --create-all    # skip Alembic (scratch databases)
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from giftshuffle.config import configure_logging
from giftshuffle.db.engine import make_engine
from giftshuffle.models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]

logger = logging.getLogger("giftshuffle.scripts.init_db")


def upgrade_db(target_revision: str = "head", database_url: Optional[str] = None) -> None:
    """Apply Alembic migrations up to ``target_revision``."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    if database_url:
        alembic_cfg.cmd_opts = argparse.Namespace(x=[f"db_url={database_url}"])
    command.upgrade(alembic_cfg, target_revision)
    logger.info("Database upgraded to %s", target_revision)


def create_all(database_url: Optional[str] = None) -> None:
    """Create every table straight from the model metadata."""
    engine = make_engine(database_url)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()
    logger.info("Created tables from model metadata")


def table_names(database_url: Optional[str] = None) -> list[str]:
    engine = make_engine(database_url)
    try:
        return sorted(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Initialise the giftshuffle database.")
    parser.add_argument("--database-url", default=None, help="Overrides DB_URL.")
    parser.add_argument("--revision", default="head")
    parser.add_argument(
        "--create-all",
        action="store_true",
        help="Create tables from the models instead of running migrations.",
    )
    args = parser.parse_args()

    configure_logging()
    if args.create_all:
        create_all(args.database_url)
    else:
        upgrade_db(args.revision, args.database_url)
    print("Current tables:", ", ".join(table_names(args.database_url)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
