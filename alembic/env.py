"""Alembic environment for the portal schema (URL from HOSTEL_DATABASE_URL)."""

from __future__ import annotations

import os, sys
from logging.config import fileConfig

from alembic import context
from sqlmodel import SQLModel

# Asegura imports relativos al proyecto
sys.path.append(os.getcwd())

from hostel_portal.config import settings  # noqa: E402
from hostel_portal.db import make_engine  # noqa: E402

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

config.set_main_option("script_location", "alembic")
config.set_main_option("sqlalchemy.url", settings.database_url)

# hostel_portal.db importa los modelos, así que la metadata ya tiene las tablas
target_metadata = SQLModel.metadata

# SQLite no soporta ALTER TABLE completo: migraciones en modo batch
RENDER_AS_BATCH = settings.database_url.startswith("sqlite")


def run_migrations_offline() -> None:
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=RENDER_AS_BATCH,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = make_engine(settings.database_url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=RENDER_AS_BATCH,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
