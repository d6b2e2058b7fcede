# backend/truckcheck/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the instance folder unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///truckcheck.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Invoice directory (line items per invoice number)
    INVOICE_DIRECTORY_URL = os.environ.get("INVOICE_DIRECTORY_URL", "http://127.0.0.1:5050/api")
    INVOICE_DIRECTORY_TIMEOUT = float(os.environ.get("INVOICE_DIRECTORY_TIMEOUT", "10"))

    # Goods leave the warehouse when the truck is loaded
    DECREMENT_STOCK_ON_CHECKOUT = _env_bool("DECREMENT_STOCK_ON_CHECKOUT", True)

    CHECKOUT_PAGE_LIMIT_MAX = int(os.environ.get("CHECKOUT_PAGE_LIMIT_MAX", "200"))
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
