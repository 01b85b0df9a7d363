# backend/poscore/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return float(value)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/poscore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///poscore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pricing policy applied to cart totals (basis points, 0 = disabled)
    POS_TAX_RATE_BPS = _env_int("POS_TAX_RATE_BPS", 0)
    POS_DISCOUNT_RATE_BPS = _env_int("POS_DISCOUNT_RATE_BPS", 0)

    # Refund policy for returns (fee deducted from the gross refund)
    POS_RESTOCKING_FEE_BPS = _env_int("POS_RESTOCKING_FEE_BPS", 0)
    POS_RESTOCKING_FEE_CENTS = _env_int("POS_RESTOCKING_FEE_CENTS", 0)

    # Label requests handed to the external barcode renderer
    POS_DEFAULT_BARCODE_FORMAT = os.environ.get("POS_DEFAULT_BARCODE_FORMAT", "CODE128")

    # Unit-of-work retry and lock wait bounds
    POS_RETRY_ATTEMPTS = _env_int("POS_RETRY_ATTEMPTS", 3)
    POS_RETRY_BACKOFF_SECONDS = _env_float("POS_RETRY_BACKOFF_SECONDS", 0.1)
    POS_DB_LOCK_TIMEOUT_SECONDS = _env_float("POS_DB_LOCK_TIMEOUT_SECONDS", 5.0)

    POS_SEARCH_LIMIT = _env_int("POS_SEARCH_LIMIT", 20)

