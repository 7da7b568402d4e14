# backend/tailorpos/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return int(value)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tailorpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tailorpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Calendar used for daily stats, barcodes and order ids
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    # Country calling code stripped from 12-digit phone numbers
    PHONE_COUNTRY_PREFIX = os.environ.get("PHONE_COUNTRY_PREFIX", "20")

    CHECKOUT_RETRY_ATTEMPTS = _int_env("CHECKOUT_RETRY_ATTEMPTS", 3)
    RETRY_BACKOFF_BASE = float(os.environ.get("RETRY_BACKOFF_BASE", "0.1"))

    INVENTORY_PAGE_SIZE = _int_env("INVENTORY_PAGE_SIZE", 20)
    SALES_PAGE_SIZE = _int_env("SALES_PAGE_SIZE", 15)
    CUSTOMER_PAGE_SIZE = _int_env("CUSTOMER_PAGE_SIZE", 20)
    MAX_PAGE_SIZE = _int_env("MAX_PAGE_SIZE", 100)
    IMPORT_BATCH_SIZE = _int_env("IMPORT_BATCH_SIZE", 500)

    SESSION_ABSOLUTE_HOURS = _int_env("SESSION_ABSOLUTE_HOURS", 24)
    SESSION_IDLE_HOURS = _int_env("SESSION_IDLE_HOURS", 8)

    CORS_ORIGINS = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )
