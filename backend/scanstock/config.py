# backend/scanstock/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/scanstock.sqlite3 unless DATABASE_URL points at Postgres
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///scanstock.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for waiting on a product row lock before failing with a conflict.
    # Applied as the SQLite busy timeout and as Postgres "SET LOCAL lock_timeout".
    LOCK_TIMEOUT_SECONDS = float(os.environ.get("LOCK_TIMEOUT_SECONDS", "5"))

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "ORD")

    EXPIRY_WINDOW_DAYS = _int_env("EXPIRY_WINDOW_DAYS", 7)
    OUTBOUND_POPULAR_LIMIT = _int_env("OUTBOUND_POPULAR_LIMIT", 10)

    DEFAULT_PAGE_SIZE = _int_env("DEFAULT_PAGE_SIZE", 50)
    MAX_PAGE_SIZE = _int_env("MAX_PAGE_SIZE", 200)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed to call the API (comma-separated)
    CORS_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if o.strip()
    )
