# Overview: Flask API routes for POS operations; parses input and returns JSON responses.

# backend/poscore/routes/pos.py
"""
POS API routes

WHY: Thin JSON surface over pos_service. Authentication and routing
policy live in the host application; these handlers only translate
requests into core calls and tagged results into HTTP responses.

DESIGN:
- The cart is client-side session state. POST /invoices sends its lines,
  the server rebuilds a Cart from the catalog (client prices are ignored)
  and finalizes it, so every quantity is re-validated against live stock.
- Error codes map to HTTP status via ERROR_STATUS.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import invoice_service, ledger_service, pos_service, return_service
from ..services.cart import Cart
from ..services.errors import InvalidRequest, PosError
from ..time_utils import parse_iso_datetime
from ..validation import optional_int, positive_int


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500

ERROR_STATUS = {
    "INVALID_REQUEST": 400,
    "NOT_FOUND": 404,
    "INSUFFICIENT_STOCK": 409,
    "STOCK_CHANGED": 409,
    "OVER_RETURN": 409,
    "PERSISTENCE_UNAVAILABLE": 503,
}


def _error_response(error: PosError):
    return jsonify(error.to_dict()), ERROR_STATUS.get(error.code, 400)


def _user_id(data: dict) -> int | None:
    return optional_int(data.get("user_id") or request.headers.get("X-User-Id"), "user_id")


def _list_limit(raw) -> int:
    if raw is None or raw == "":
        return DEFAULT_LIST_LIMIT
    return min(positive_int(raw, "limit"), MAX_LIST_LIMIT)


# =============================================================================
# SCAN / SEARCH
# =============================================================================

@pos_bp.get("/items/resolve")
def resolve_item_route():
    """Scan mode lookup. 404 names the code that failed."""
    result = pos_service.resolve_barcode(request.args.get("code", ""))
    if not result.ok:
        return _error_response(result.error)
    return jsonify({"item": result.value.to_dict()}), 200


@pos_bp.get("/items/search")
def search_items_route():
    """Search mode lookup (name substring, case-insensitive)."""
    try:
        limit = optional_int(request.args.get("limit"), "limit")
    except InvalidRequest as e:
        return _error_response(e)

    result = pos_service.search_items(request.args.get("q", ""), limit)
    if not result.ok:
        return _error_response(result.error)
    return jsonify({"items": [item.to_dict() for item in result.value]}), 200


# =============================================================================
# INVOICES
# =============================================================================

@pos_bp.post("/invoices")
def finalize_sale_route():
    """
    Finalize a sale.

    Request body:
    {
        "lines": [{"sku": "12345678", "quantity": 2}],
        "payment_method": "CASH",
        "account_id": 1,  (optional)
        "user_id": 7,  (optional)
        "note": "..."  (optional)
    }

    Returns:
        201: Invoice created
        400: Invalid input
        404: Unknown SKU or no settlement account
        409: Insufficient stock / stock changed
        503: Storage unavailable
    """
    try:
        data = request.get_json(silent=True) or {}
        lines = data.get("lines")
        if not isinstance(lines, list) or not lines:
            return jsonify({"error": "lines required", "code": "INVALID_REQUEST"}), 400

        cart = Cart()
        for raw in lines:
            if not isinstance(raw, dict):
                return jsonify({"error": "each line must be an object", "code": "INVALID_REQUEST"}), 400
            added = pos_service.add_to_cart(cart, raw.get("sku", ""), raw.get("quantity", 1))
            if not added.ok:
                return _error_response(added.error)

        result = pos_service.finalize_sale(
            cart,
            data.get("payment_method"),
            user_id=_user_id(data),
            account_id=optional_int(data.get("account_id"), "account_id"),
            note=data.get("note"),
        )
        if not result.ok:
            return _error_response(result.error)

        return jsonify({"invoice": result.value.to_dict(include_lines=True)}), 201

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/invoices")
def list_invoices_route():
    try:
        since = parse_iso_datetime(request.args.get("since"))
        until = parse_iso_datetime(request.args.get("until"))
        limit = _list_limit(request.args.get("limit"))
    except ValueError:
        return jsonify({"error": "since/until must be ISO-8601 datetimes", "code": "INVALID_REQUEST"}), 400
    except InvalidRequest as e:
        return _error_response(e)

    invoices = invoice_service.list_invoices(since=since, until=until, limit=limit)
    return jsonify({"invoices": [inv.to_dict() for inv in invoices]}), 200


@pos_bp.get("/invoices/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    invoice = invoice_service.get_invoice(invoice_id)
    if not invoice:
        return jsonify({"error": "Invoice not found", "code": "NOT_FOUND"}), 404

    return jsonify({
        "invoice": invoice.to_dict(include_lines=True),
        "returnable": invoice_service.returnable_quantities(invoice),
    }), 200


# =============================================================================
# RETURNS
# =============================================================================

@pos_bp.post("/invoices/<int:invoice_id>/returns")
def process_return_route(invoice_id: int):
    """
    Process a return against an invoice.

    Request body:
    {
        "lines": [{"sku": "12345678", "quantity": 1}],
        "refund_method": "CASH",
        "account_id": 1,  (optional)
        "reason": "Damaged box"  (optional)
    }

    Returns:
        201: Return processed (stock restored, refund debited)
        400: Invalid input
        404: Invoice / SKU / account not found
        409: Over-return
    """
    try:
        data = request.get_json(silent=True) or {}

        result = pos_service.process_return(
            invoice_id,
            data.get("lines"),
            data.get("refund_method"),
            user_id=_user_id(data),
            account_id=optional_int(data.get("account_id"), "account_id"),
            reason=data.get("reason"),
        )
        if not result.ok:
            return _error_response(result.error)

        return jsonify({"return": result.value.to_dict(include_lines=True)}), 201

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/invoices/<int:invoice_id>/returns")
def list_returns_route(invoice_id: int):
    if not invoice_service.get_invoice(invoice_id):
        return jsonify({"error": "Invoice not found", "code": "NOT_FOUND"}), 404

    returns = return_service.list_invoice_returns(invoice_id)
    return jsonify({"returns": [r.to_dict(include_lines=True) for r in returns]}), 200


# =============================================================================
# CASH / BANK, LABELS
# =============================================================================

@pos_bp.get("/accounts")
def list_accounts_route():
    accounts = ledger_service.list_accounts()
    return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200


@pos_bp.get("/accounts/<int:account_id>/transactions")
def account_transactions_route(account_id: int):
    entries = ledger_service.get_account_transactions(account_id)
    return jsonify({"transactions": [e.to_dict() for e in entries]}), 200


@pos_bp.post("/labels")
def build_label_route():
    """Validate a barcode label request for the external renderer."""
    data = request.get_json(silent=True) or {}
    result = pos_service.build_label(data.get("sku", ""), data.get("barcode_format"), data.get("copies", 1))
    if not result.ok:
        return _error_response(result.error)
    return jsonify({"label": result.value.to_dict()}), 200
