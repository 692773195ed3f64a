"""Bring the Goalify remote store up to the latest Alembic revision.

Deploys run this before starting the API. The script waits for the database
to accept connections, upgrades it, then confirms the profile, stats, goal,
conversation and message tables exist. ``--check`` only reports whether the
database is already at head.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

LOGGER = logging.getLogger("goalify.migrations")
DEFAULT_TIMEOUT = int(os.getenv("GOALIFY_DB_MIGRATION_TIMEOUT", "60"))
DEFAULT_POLL_INTERVAL = float(os.getenv("GOALIFY_DB_MIGRATION_POLL_INTERVAL", "3"))
URL_PLACEHOLDER = "%(GOALIFY_DATABASE_URL)s"
BACKEND_ROOT = Path(__file__).resolve().parent.parent
EXPECTED_TABLES = ("user_profiles", "user_stats", "goals", "conversations", "messages")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upgrade the Goalify database schema.")
    parser.add_argument(
        "--revision",
        default=os.getenv("GOALIFY_DB_MIGRATION_REVISION", "head"),
        help="Target revision (default: head).",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds to wait for the database (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between connection attempts (default: {DEFAULT_POLL_INTERVAL}).",
    )
    parser.add_argument(
        "--config",
        default=str(BACKEND_ROOT / "alembic.ini"),
        help="Path to alembic.ini.",
    )
    parser.add_argument(
        "--skip-wait",
        action="store_true",
        help="Do not probe the database before upgrading.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report whether the database is at head; exit 1 when it is behind.",
    )
    return parser.parse_args(argv)


def get_alembic_config(config_path: str) -> Config:
    config = Config(config_path)
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    """Return the configured URL, substituting ``GOALIFY_DATABASE_URL`` for the ini placeholder."""
    url = config.get_main_option("sqlalchemy.url")
    if url and url != URL_PLACEHOLDER:
        return url
    env_url = os.getenv("GOALIFY_DATABASE_URL")
    if not env_url:
        raise RuntimeError("GOALIFY_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url)
    return env_url


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    """Retry ``SELECT 1`` on connectivity errors until ``timeout`` elapses.

    Any other SQLAlchemy error ends the wait at once. At least one attempt is
    always made, even with a zero timeout.
    """
    engine = create_engine(database_url, pool_pre_ping=True)
    deadline = time.monotonic() + timeout
    attempt = 0
    try:
        while True:
            attempt += 1
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
            except OperationalError as exc:
                LOGGER.warning("Database not reachable (attempt %d): %s", attempt, exc)
                last_error: SQLAlchemyError = exc
            except SQLAlchemyError as exc:
                LOGGER.error("Readiness probe failed: %s", exc)
                raise RuntimeError("Database rejected the readiness probe.") from exc
            else:
                LOGGER.info("Database reachable after %d attempt(s).", attempt)
                return
            if time.monotonic() + poll_interval >= deadline:
                raise RuntimeError(f"Database not reachable after {attempt} attempt(s).") from last_error
            time.sleep(poll_interval)
    finally:
        engine.dispose()


def head_revision(config: Config) -> Optional[str]:
    return ScriptDirectory.from_config(config).get_current_head()


def current_revision(database_url: str) -> Optional[str]:
    engine = create_engine(database_url)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def missing_tables(database_url: str) -> List[str]:
    engine = create_engine(database_url)
    try:
        present = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    return [table for table in EXPECTED_TABLES if table not in present]


def is_up_to_date(config: Config, database_url: str) -> bool:
    current = current_revision(database_url)
    head = head_revision(config)
    if current != head:
        LOGGER.warning("Database is at %s; latest revision is %s.", current or "<empty>", head)
        return False
    absent = missing_tables(database_url)
    if absent:
        LOGGER.warning("Database is at head but is missing tables: %s", ", ".join(absent))
        return False
    LOGGER.info("Database is at head (%s).", head)
    return True


def run_migrations(
    revision: str,
    *,
    timeout: int,
    poll_interval: float,
    config: Optional[Config] = None,
    wait: bool = True,
) -> None:
    config = config or get_alembic_config(str(BACKEND_ROOT / "alembic.ini"))
    database_url = resolve_database_url(config)
    if wait:
        wait_for_database(database_url, timeout=timeout, poll_interval=poll_interval)
    LOGGER.info("Upgrading Goalify schema to %s", revision)
    command.upgrade(config, revision)
    if revision == "head":
        absent = missing_tables(database_url)
        if absent:
            raise RuntimeError(f"Upgrade finished without creating: {', '.join(absent)}")
    LOGGER.info("Migrations complete.")


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("GOALIFY_DB_MIGRATION_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        config = get_alembic_config(args.config)
        if args.check:
            return 0 if is_up_to_date(config, resolve_database_url(config)) else 1
        run_migrations(
            args.revision,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            config=config,
            wait=not args.skip_wait,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
