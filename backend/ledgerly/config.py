# Overview: Application settings read from the environment, with development defaults.

from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relative SQLite paths resolve under backend/instance/
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///ledgerly.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # SQLite writers wait this long on BEGIN IMMEDIATE before surfacing a conflict
    SQLALCHEMY_ENGINE_OPTIONS = (
        {"connect_args": {"timeout": int(os.environ.get("SQLITE_BUSY_TIMEOUT_SECONDS", "15"))}}
        if SQLALCHEMY_DATABASE_URI.startswith("sqlite")
        else {}
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Advisory edit locks lapse on their own; a closed browser tab does not hold a document.
    EDIT_LOCK_TTL_SECONDS = int(os.environ.get("EDIT_LOCK_TTL_SECONDS", "900"))

    # An invoice overdue this many days blocks further credit for its customer.
    CREDIT_BLOCK_OVERDUE_DAYS = int(os.environ.get("CREDIT_BLOCK_OVERDUE_DAYS", "60"))

    # Comma-separated browser origins allowed to call the API; empty disables CORS headers.
    CORS_ALLOWED_ORIGINS = frozenset(
        origin.strip()
        for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    )
