# alembic/env.py
from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

# shell env wins over .env
load_dotenv(override=False)

from movievault.core.settings import settings  # noqa: E402
from movievault.db_models import Base          # noqa: E402

config = context.config
target_metadata = Base.metadata

if config.config_file_name is not None:
    fileConfig(config.config_file_name)
log = logging.getLogger("alembic.env")

# async driver -> the sync driver Alembic needs
_SYNC_DRIVERS = (
    ("postgres://", "postgresql+psycopg://"),
    ("postgresql://", "postgresql+psycopg://"),
    ("postgresql+asyncpg://", "postgresql+psycopg://"),
    ("postgresql+psycopg2://", "postgresql+psycopg://"),
    ("sqlite+aiosqlite://", "sqlite://"),
)


def migration_url() -> str:
    """ALEMBIC_SYNC_URL if set, otherwise DATABASE_URL with a sync driver."""
    url = (os.getenv("ALEMBIC_SYNC_URL") or settings.database_url or "").strip()
    if not url:
        raise RuntimeError("No database URL for migrations. Set ALEMBIC_SYNC_URL or DATABASE_URL.")
    for prefix, sync_prefix in _SYNC_DRIVERS:
        if url.startswith(prefix):
            return sync_prefix + url[len(prefix):]
    return url


def _configure(**kw) -> None:
    url = kw.get("url") or config.get_main_option("sqlalchemy.url")
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER most things in place
        render_as_batch=url.startswith("sqlite"),
        **kw,
    )


def run_migrations_offline() -> None:
    _configure(url=config.get_main_option("sqlalchemy.url"), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


config.set_main_option("sqlalchemy.url", migration_url())
log.info("Migrating %s", config.get_main_option("sqlalchemy.url").split("@")[-1])

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
