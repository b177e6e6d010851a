# backend/nexa/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/nexa.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///nexa.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser clients allowed to call the API
    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
        ).split(",")
        if origin.strip()
    )

    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 12)

    # Catalog lookup
    CATALOG_SEARCH_LIMIT = _env_int("CATALOG_SEARCH_LIMIT", 10)

    # Fiscal emission. "sandbox" simulates authorization locally (homologation,
    # no fiscal value); "http" posts to FISCAL_ENDPOINT_URL.
    FISCAL_MODE = os.environ.get("FISCAL_MODE", "sandbox")
    FISCAL_ENDPOINT_URL = os.environ.get("FISCAL_ENDPOINT_URL")
    FISCAL_API_TOKEN = os.environ.get("FISCAL_API_TOKEN")
    FISCAL_TIMEOUT_SECONDS = float(os.environ.get("FISCAL_TIMEOUT_SECONDS", "15"))
    FISCAL_SERIES = _env_int("FISCAL_SERIES", 1)
    # An emit older than this is presumed dead and may be taken over
    FISCAL_EMIT_LOCK_SECONDS = _env_int("FISCAL_EMIT_LOCK_SECONDS", 120)
    FISCAL_STATE_CODE = os.environ.get("FISCAL_STATE_CODE", "35")
    INVOICE_CANCEL_WINDOW_HOURS = _env_int("INVOICE_CANCEL_WINDOW_HOURS", 24)
    CORRECTION_MIN_LENGTH = _env_int("CORRECTION_MIN_LENGTH", 15)
