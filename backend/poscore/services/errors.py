# Overview: Error taxonomy for the POS core and the tagged result returned to callers.

"""
POS error taxonomy

Every domain failure is raised as a PosError subclass carrying a stable
``code`` and a JSON-safe ``details`` dict. The unit of work rolls back on any
of them, so a raised error never leaves partial effects behind.

Codes:
- NOT_FOUND: unknown barcode/SKU, invoice or account (re-scan / re-select)
- INSUFFICIENT_STOCK: requested quantity exceeds available stock (reduce quantity)
- STOCK_CHANGED: stock moved between cart edit and finalize (re-confirm)
- OVER_RETURN: return exceeds the invoiced quantity (rejected)
- PERSISTENCE_UNAVAILABLE: storage/ledger timeout or lock exhaustion (retry)
- INVALID_REQUEST: malformed input (bad quantity, empty cart, unknown method)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar


class PosError(Exception):
    """Base class for POS core errors."""

    code = "POS_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidRequest(PosError):
    code = "INVALID_REQUEST"


class NotFound(PosError):
    code = "NOT_FOUND"


class InsufficientStock(PosError):
    code = "INSUFFICIENT_STOCK"


class StockChanged(PosError):
    code = "STOCK_CHANGED"
    retryable = True


class OverReturn(PosError):
    code = "OVER_RETURN"


class PersistenceUnavailable(PosError):
    code = "PERSISTENCE_UNAVAILABLE"
    retryable = True


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged success/error value returned by the caller-facing API."""

    value: T | None = None
    error: PosError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> str | None:
        return self.error.code if self.error else None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PosError) -> "Result[T]":
        return cls(error=error)
