#!/usr/bin/env python3
"""Database bootstrap: run Alembic migrations, then the additive column pass.

- Always run `alembic upgrade head` on startup.
- Only an empty database that cannot replay migrations falls back to
  `create_all` + `alembic stamp head`.
- `ensure_additive_columns` adds model columns that are missing from
  existing tables. It only ever adds nullable/defaulted columns, never
  drops or alters, and running it twice is a no-op. It also runs at API
  startup so an old database file keeps working after a model change.
"""

import logging
import os
import sys
import time
from typing import List

from dotenv import load_dotenv
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

logger = logging.getLogger(__name__)


def check_db_ready():
    """Check if database is ready"""
    from core.database import check_db_connection
    return check_db_connection()


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    cfg = Config(os.path.join(here, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(here, "alembic"))
    return cfg


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def alembic_stamp_head() -> None:
    """Stamp alembic_version as head (no schema changes)."""
    from alembic import command

    command.stamp(_get_alembic_config(), "head")


def create_schema_directly():
    """Fallback: create schema directly from SQLAlchemy models.

    Must be followed by `alembic stamp head` so future upgrades can apply.
    """
    from core.database import Base, engine
    import models  # noqa: F401  (registers tables on Base.metadata)

    existing = set(inspect(engine).get_table_names())
    if "daily_record" in existing:
        with engine.connect() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM daily_record")).scalar()
        if count:
            raise RuntimeError(
                f"Refusing direct schema creation on non-empty DB (daily records={count}). "
                f"Run Alembic migrations instead."
            )

    print("Creating schema directly from models...")
    Base.metadata.create_all(engine, checkfirst=True)

    # Mark as up to date so future runs can upgrade incrementally.
    alembic_stamp_head()

    print("Schema created successfully!")


def ensure_additive_columns(engine: Engine) -> List[str]:
    """
    Add every model column missing from an existing table.

    Tables that do not exist yet are left to migrations / create_all.
    Per-column failures are logged and skipped so one bad column never
    blocks startup. Returns "table.column" for each column added.
    """
    from core.database import Base
    import models  # noqa: F401

    added: List[str] = []
    try:
        inspector = inspect(engine)
        existing_tables = set(inspector.get_table_names())
    except SQLAlchemyError as e:
        logger.warning(f"Additive schema pass skipped, cannot inspect database: {e}")
        return added

    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue
        present = {c["name"] for c in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name in present or column.primary_key:
                continue
            column_type = column.type.compile(dialect=engine.dialect)
            ddl = f'ALTER TABLE {table.name} ADD COLUMN "{column.name}" {column_type}'
            default = column.default.arg if column.default is not None and column.default.is_scalar else None
            if isinstance(default, bool):
                ddl += f" DEFAULT {'TRUE' if default else 'FALSE'}"
            elif isinstance(default, (int, float)):
                ddl += f" DEFAULT {default}"
            elif isinstance(default, str):
                ddl += f" DEFAULT '{default}'"
            try:
                with engine.begin() as conn:
                    conn.execute(text(ddl))
                added.append(f"{table.name}.{column.name}")
                logger.info(f"Added missing column {table.name}.{column.name}")
            except SQLAlchemyError as e:
                logger.warning(f"Could not add column {table.name}.{column.name}: {e}")
    return added


def main():
    print("Waiting for database to be ready...")
    max_retries = 30
    retry_count = 0

    while retry_count < max_retries:
        if check_db_ready():
            print("Database is ready!")
            break
        retry_count += 1
        print(f"Database is unavailable - sleeping (attempt {retry_count}/{max_retries})")
        time.sleep(1)
    else:
        print("ERROR: Database is not ready after maximum retries")
        sys.exit(1)

    try:
        alembic_upgrade_head()
        print("Migrations completed successfully!")
    except Exception as e:
        print(f"ERROR: Alembic upgrade failed: {e}")
        # Only fallback to create_all for an EMPTY database that cannot replay migrations.
        try:
            create_schema_directly()
        except Exception as e:
            print(f"ERROR: Schema bootstrap failed: {e}")
            sys.exit(1)
        print("Schema bootstrap completed via create_all fallback.")

    from core.database import engine
    added = ensure_additive_columns(engine)
    print(f"Additive column pass complete ({len(added)} added)")


if __name__ == '__main__':
    main()
