# backend/bookstock/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the instance folder unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///bookstock.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger defaults
    DEFAULT_LOW_STOCK_THRESHOLD = _env_int("BOOKSTOCK_DEFAULT_THRESHOLD", 5)

    # Listing limits
    ALERT_LIST_LIMIT = _env_int("BOOKSTOCK_ALERT_LIST_LIMIT", 100)
    TRANSFER_LIST_LIMIT = _env_int("BOOKSTOCK_TRANSFER_LIST_LIMIT", 50)
    MAX_LIST_LIMIT = 200

    # Retry policy for lock/optimistic-version conflicts
    DB_RETRY_ATTEMPTS = _env_int("BOOKSTOCK_DB_RETRY_ATTEMPTS", 3)
    DB_RETRY_BACKOFF = _env_float("BOOKSTOCK_DB_RETRY_BACKOFF", 0.1)

    # Header carrying the actor id resolved by the upstream auth layer
    ACTOR_HEADER = os.environ.get("BOOKSTOCK_ACTOR_HEADER", "X-Actor-Id")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "BOOKSTOCK_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get("BOOKSTOCK_LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    DB_RETRY_BACKOFF = 0.0
    LOG_LEVEL = "WARNING"
