"""Alembic environment for the trade_verification and trade_market_data schemas."""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool, text

import trade_verifier.db.tables  # noqa: F401  registers every table on Base.metadata
from trade_verifier.db.base import Base
from trade_verifier.db.engine import normalise_url

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

target_metadata = Base.metadata
VERSION_SCHEMA = "trade_verification"
OWNED_SCHEMAS = sorted({t.schema for t in target_metadata.tables.values() if t.schema})


def database_url() -> str:
    """``VERIFIER_DATABASE_URL`` if set, else ``sqlalchemy.url`` from alembic.ini."""
    url = os.environ.get("VERIFIER_DATABASE_URL") or alembic_config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("No database URL: set VERIFIER_DATABASE_URL or sqlalchemy.url")
    return normalise_url(url)


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table":
        return obj.schema in OWNED_SCHEMAS
    return True


def _context_options() -> dict:
    return {
        "target_metadata": target_metadata,
        "include_schemas": True,
        "include_object": include_object,
        "version_table_schema": VERSION_SCHEMA,
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        for schema in OWNED_SCHEMAS:
            connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        connection.commit()

        context.configure(connection=connection, **_context_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
