# alembic/env.py

import os
import sys

from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

# --- Корень проекта в sys.path, чтобы работал импорт `src.*` ---
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# --- Настройки (.env читается внутри src.config) ---
from src import config as app_config

# --- Импортируем Base; модели регистрируются при импорте src.db ---
from src.db import Base

# --- Конфигурируем Alembic ---
config = context.config

# --- Логирование Alembic ---
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# --- Берём строку подключения к БД (DATABASE_URL) ---
db_url = app_config.DATABASE_URL
if not db_url:
    raise RuntimeError("DATABASE_URL is not set!")


def run_migrations_offline():
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        compare_server_default=True
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(
        db_url,
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
