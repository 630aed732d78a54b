"""
alembic/env.py

Migration environment for the scan tables.

The target URL comes from ``-x db_url=...``, then ``ALEMBIC_DATABASE_URL``,
then the same resolution the API uses (``db.config.resolve_database_url``).
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

import db.models  # noqa: F401 (registers every scan table on Base.metadata)
from db.base import Base
from db.config import load_env_files, normalize_postgres_url, resolve_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    load_env_files()
    override = context.get_x_argument(as_dictionary=True).get("db_url") or os.getenv(
        "ALEMBIC_DATABASE_URL", ""
    )
    url = normalize_postgres_url(override.strip()) if override.strip() else resolve_database_url()
    if not url.startswith("postgresql"):
        scheme = url.split(":", 1)[0]
        raise RuntimeError(f"Scan tables require PostgreSQL (JSONB, ON CONFLICT); got {scheme!r}.")
    return url


def _run(**configure_kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **configure_kwargs)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _run(url=_migration_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    engine = create_engine(_migration_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _run(connection=connection)
