# src/config.py
# Настройки окружения: всё читается из .env / переменных окружения.

from __future__ import annotations

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _list_env(name: str, default: tuple[str, ...]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DATABASE_URL = os.getenv("DATABASE_URL")
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")

CORS_ORIGINS = _list_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()

DB_POOL_SIZE = _int_env("DB_POOL_SIZE", 20)
DB_MAX_OVERFLOW = _int_env("DB_MAX_OVERFLOW", 20)
# первичное подключение: число повторов и базовая пауза (экспоненциальный backoff)
DB_CONNECT_RETRIES = _int_env("DB_CONNECT_RETRIES", 5)
DB_CONNECT_BACKOFF = _float_env("DB_CONNECT_BACKOFF", 1.0)
