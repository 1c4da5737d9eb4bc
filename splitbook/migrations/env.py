"""
migrations/env.py — Alembic environment for the splitbook schema.

The database comes from DATABASE_URL, or TEST_DATABASE_URL when TEST_RUN is
set, read through splitbook.config so .env files apply here too.

    alembic upgrade head
    TEST_RUN=1 alembic upgrade head
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Running `alembic` from a checkout does not put the project on sys.path.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from splitbook.config import normalise_database_url  # noqa: E402
from splitbook.app.extensions import db  # noqa: E402
from splitbook.app.models import (  # noqa: E402,F401
    account,
    group,
    group_member,
    person,
    settlement,
    split_share,
    transaction,
    user,
)

target_metadata = db.metadata

_url_var = "TEST_DATABASE_URL" if os.getenv("TEST_RUN") else "DATABASE_URL"
database_url = normalise_database_url(os.environ[_url_var])

config = context.config
config.set_main_option("sqlalchemy.url", database_url)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    """Emits SQL to stdout instead of connecting (alembic upgrade --sql)."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
