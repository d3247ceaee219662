# backend/ledgerpos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledgerpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledgerpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Note stamped on count adjustments when the session has none
    DEFAULT_COUNT_NOTE = os.environ.get("DEFAULT_COUNT_NOTE", "Stock count")

    # Page size for "recent" listings (movements, sales, count sessions)
    RECENT_LIST_LIMIT = int(os.environ.get("RECENT_LIST_LIMIT", "50"))
    # Upper bound for a caller-supplied ?limit=
    MAX_LIST_LIMIT = int(os.environ.get("MAX_LIST_LIMIT", "500"))

    DEMO_SEED_ENABLED = _env_flag("DEMO_SEED_ENABLED")

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )
