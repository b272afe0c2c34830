"""Schema migrations for the scheduler database.

The migration scripts ship inside lifesync.db.migrations, so this runner works
from a checkout and from an installed package alike. Databases that were
bootstrapped by the app's create_all() before Alembic ever ran are adopted by
stamping the initial revision first.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from lifesync.config import Settings

logger = logging.getLogger(__name__)

INITIAL_REVISION = "4f2a9c1e7b30"
MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_alembic_config(database_url: str | None = None) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url or Settings().database_url)
    return cfg


async def table_names(database_url: str) -> set[str]:
    engine = create_async_engine(database_url)
    try:
        async with engine.connect() as conn:
            names = await conn.run_sync(lambda c: inspect(c).get_table_names())
    finally:
        await engine.dispose()
    return set(names)


def is_unversioned(tables: set[str]) -> bool:
    """True when the schema exists but Alembic has never tracked it."""
    return "scheduled_tasks" in tables and "alembic_version" not in tables


def upgrade(revision: str = "head", database_url: str | None = None) -> None:
    cfg = get_alembic_config(database_url)
    url = cfg.get_main_option("sqlalchemy.url")
    if is_unversioned(asyncio.run(table_names(url))):
        logger.warning(
            "Found scheduler tables without alembic_version; stamping %s",
            INITIAL_REVISION,
        )
        command.stamp(cfg, INITIAL_REVISION)
    command.upgrade(cfg, revision)
    logger.info("Database upgraded to %s", revision)


def downgrade(revision: str, database_url: str | None = None) -> None:
    command.downgrade(get_alembic_config(database_url), revision)
    logger.info("Database downgraded to %s", revision)


def current(database_url: str | None = None) -> None:
    command.current(get_alembic_config(database_url), verbose=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="lifesync-migrate", description="Manage the LifeSync scheduler schema"
    )
    parser.add_argument(
        "--database-url", help="Override LIFESYNC_DATABASE_URL for this run"
    )
    sub = parser.add_subparsers(dest="command")

    up = sub.add_parser("upgrade", help="Upgrade to a revision (default: head)")
    up.add_argument("revision", nargs="?", default="head")
    down = sub.add_parser("downgrade", help="Downgrade to a revision")
    down.add_argument("revision")
    sub.add_parser("current", help="Show the current revision")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    if args.command == "downgrade":
        downgrade(args.revision, args.database_url)
    elif args.command == "current":
        current(args.database_url)
    else:
        upgrade(getattr(args, "revision", "head"), args.database_url)
