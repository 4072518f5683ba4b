# backend/bms/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bms.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bms.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")  # rotating file handler when set
    LOG_MAX_BYTES = 5 * 1024 * 1024
    LOG_BACKUP_COUNT = 3

    # In-memory cache defaults (seconds / entry count)
    CACHE_DEFAULT_TTL = _int_env("CACHE_DEFAULT_TTL", 300)
    CACHE_MAX_ENTRIES = _int_env("CACHE_MAX_ENTRIES", 1000)
    REPORT_CACHE_TTL = _int_env("REPORT_CACHE_TTL", 60)

    # List endpoints
    DEFAULT_PAGE_SIZE = _int_env("DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE = _int_env("MAX_PAGE_SIZE", 100)

    # Sessions
    SESSION_ABSOLUTE_HOURS = _int_env("SESSION_ABSOLUTE_HOURS", 24)
    SESSION_IDLE_MINUTES = _int_env("SESSION_IDLE_MINUTES", 120)

    # bcrypt cost factor; tests lower it to keep the suite fast
    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 12)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_FILE = None
    BCRYPT_ROUNDS = 4
