from __future__ import annotations

from typing import Any

from .services.errors import InvalidRequest


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request payloads.

    Rejects bools, floats, scientific notation and decimal strings so that
    "1.5" units or "1e3" cents never reach the cart or the ledger.
    """
    if value is None:
        raise InvalidRequest(f"{field} is required", details={"field": field})

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidRequest(f"{field} must be an integer", details={"field": field})
        if 'e' in stripped.lower():
            raise InvalidRequest(f"{field} must be a plain integer (scientific notation not allowed)", details={"field": field})
        if '.' in stripped:
            raise InvalidRequest(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise InvalidRequest(f"{field} must be an integer", details={"field": field})

    if isinstance(value, float):
        raise InvalidRequest(f"{field} must be an integer, not a decimal", details={"field": field})

    raise InvalidRequest(f"{field} must be an integer", details={"field": field})


def positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number < 1:
        raise InvalidRequest(f"{field} must be at least 1", details={"field": field, "value": number})
    return number


def non_negative_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number < 0:
        raise InvalidRequest(f"{field} must not be negative", details={"field": field, "value": number})
    return number


def price_cents(value: Any, field: str) -> int:
    number = non_negative_int(value, field)
    if number > MAX_PRICE_CENTS:
        raise InvalidRequest(f"{field} exceeds maximum of {MAX_PRICE_CENTS} cents", details={"field": field})
    return number


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)
