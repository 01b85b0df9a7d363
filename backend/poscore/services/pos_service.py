# Overview: Caller-facing POS operations; every call returns a tagged Result and never raises.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from . import barcode_service, invoice_service, return_service
from .cart import Cart
from .errors import PersistenceUnavailable, PosError, Result


def _call(operation: str, func, *args, **kwargs) -> Result:
    try:
        return Result.success(func(*args, **kwargs))
    except PosError as exc:
        return Result.failure(exc)
    except SQLAlchemyError as exc:
        current_app.logger.exception("%s failed on storage error", operation)
        return Result.failure(PersistenceUnavailable(
            "Storage is unavailable, retry the operation",
            details={"operation": operation, "reason": exc.__class__.__name__},
        ))


def resolve_barcode(code: str) -> Result:
    """Scan mode: exact SKU match -> Result(Item) or NOT_FOUND naming the code."""
    return _call("resolve_barcode", barcode_service.resolve, code)


def search_items(query: str, limit: int | None = None) -> Result:
    """Search mode: name substring match -> Result(list[Item])."""
    if limit is None:
        limit = int(current_app.config.get("POS_SEARCH_LIMIT", 20))
    return _call("search_items", barcode_service.search, query, limit)


def add_to_cart(cart: Cart, code: str, quantity: int = 1) -> Result:
    """
    Resolve a scanned code and add it to the cart.

    An unknown code or insufficient stock leaves the cart unchanged.
    """
    def _add():
        item = barcode_service.resolve(code)
        return cart.add_line(item.sku, quantity)

    return _call("add_to_cart", _add)


def update_cart_line(cart: Cart, sku: str, quantity: int) -> Result:
    return _call("update_cart_line", cart.update_line_qty, sku, quantity)


def remove_cart_line(cart: Cart, sku: str) -> Result:
    return _call("remove_cart_line", cart.remove_line, sku)


def finalize_sale(cart: Cart, payment_method: str, **kwargs) -> Result:
    return _call("finalize_sale", invoice_service.finalize_sale, cart, payment_method, **kwargs)


def process_return(invoice_id: int, returned_lines, refund_method: str, **kwargs) -> Result:
    return _call("process_return", return_service.process_return, invoice_id, returned_lines, refund_method, **kwargs)


def build_label(sku: str, barcode_format=None, copies=1) -> Result:
    default_format = current_app.config.get("POS_DEFAULT_BARCODE_FORMAT", "CODE128")
    return _call(
        "build_label",
        barcode_service.build_label_request,
        sku,
        barcode_format,
        copies,
        default_format=default_format,
    )
