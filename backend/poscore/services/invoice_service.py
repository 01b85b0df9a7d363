# Overview: Service-layer operations for invoice finalization; encapsulates business logic and database work.

"""
Invoice Service - atomic sale finalization

WHY: Finalize is the only operation that turns a cart into durable effects.
Stock decrement, invoice record and cash/bank credit are one transaction:
never stock without an invoice, never an invoice without stock.

ALGORITHM (one unit of work, retried on lock/version conflicts):
1. Re-read every cart SKU from the database under lock. Any line above the
   CURRENT stock fails the whole finalize with StockChanged; nothing is
   written and the cart is left intact for the cashier to adjust.
2. Resolve the settlement account for the payment method.
3. Allocate the invoice number, write the invoice and its lines (name and
   cost snapshots, plus each line's share of the grand total), decrement
   each item with a guarded UPDATE.
4. Credit the account by the grand total.
5. Commit, then clear the cart.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Invoice, InvoiceLine, ReturnLine
from poscore.time_utils import utcnow
from . import catalog_service, ledger_service
from .cart import Cart, compute_totals
from .concurrency import begin_serialized, run_in_unit_of_work
from .document_service import INVOICE_DOCUMENT_TYPE, next_document_number
from .errors import InvalidRequest, NotFound, StockChanged
from .policies import PricingPolicy, allocate_cents, pricing_policy_from_config


def _validate_against_current_stock(cart: Cart) -> dict:
    skus = [line.sku for line in cart.lines]
    items = catalog_service.get_items_for_update(skus)

    missing = [sku for sku in skus if sku not in items or not items[sku].is_active]
    if missing:
        raise NotFound(
            "Items in the cart are no longer available",
            details={"skus": missing},
        )

    changed = []
    for line in cart.lines:
        item = items[line.sku]
        if line.quantity > item.stock_qty:
            changed.append({
                "sku": line.sku,
                "requested_quantity": line.quantity,
                "available": item.stock_qty,
            })

    if changed:
        raise StockChanged(
            "Stock changed since the items were added to the cart",
            details={"items": changed},
        )

    return items


def finalize_sale(
    cart: Cart,
    payment_method: str,
    *,
    user_id: int | None = None,
    account_id: int | None = None,
    pricing_policy: PricingPolicy | None = None,
    note: str | None = None,
) -> Invoice:
    """
    Convert a cart into an immutable Invoice and clear the cart.

    Raises:
        InvalidRequest: empty cart or unknown payment method
        NotFound: an item vanished, or no settlement account exists
        StockChanged: a line exceeds current stock (cart untouched)
        PersistenceUnavailable: storage stayed locked/unreachable
    """
    if cart.is_empty():
        raise InvalidRequest("Cannot finalize an empty cart")

    method = ledger_service.normalize_payment_method(payment_method)
    policy = pricing_policy or pricing_policy_from_config(current_app.config)

    # Snapshot the lines now; the cart itself is only touched after commit
    lines = [(line.sku, line.quantity, line.unit_price_cents) for line in cart.lines]

    def _op() -> Invoice:
        begin_serialized()
        items = _validate_against_current_stock(cart)
        account = ledger_service.resolve_account(method, account_id)

        totals = compute_totals(cart.lines, policy)
        created_at = utcnow()

        invoice = Invoice(
            document_number=next_document_number(document_type=INVOICE_DOCUMENT_TYPE, prefix="INV"),
            payment_method=method,
            cash_bank_account_id=account.id,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            note=note,
            created_by_user_id=user_id,
            created_at=created_at,
        )
        db.session.add(invoice)
        db.session.flush()

        net_shares = allocate_cents(
            totals.total_cents,
            [quantity * unit_price_cents for _, quantity, unit_price_cents in lines],
        )

        for i, (sku, quantity, unit_price_cents) in enumerate(lines, start=1):
            item = items[sku]
            db.session.add(InvoiceLine(
                invoice_id=invoice.id,
                line_number=i,
                item_id=item.id,
                sku=item.sku,
                name=item.name,
                quantity=quantity,
                unit_price_cents=unit_price_cents,
                line_total_cents=quantity * unit_price_cents,
                line_net_cents=net_shares[i - 1],
                unit_cost_cents=item.cost_price_cents,
            ))
            catalog_service.decrement_stock(
                item,
                quantity,
                invoice_id=invoice.id,
                actor_user_id=user_id,
                note=f"Sale {invoice.document_number}",
            )

        ledger_service.credit(
            account,
            totals.total_cents,
            reference_type="INVOICE",
            reference_id=invoice.id,
            actor_user_id=user_id,
            note=f"Sale {invoice.document_number}",
        )
        return invoice

    try:
        invoice = run_in_unit_of_work(_op)
    except StockChanged as exc:
        current_app.logger.warning("Finalize rejected, stock changed: %s", exc.details)
        raise

    cart.clear()
    current_app.logger.info(
        "Invoice %s finalized: %d lines, total %d cents, %s",
        invoice.document_number, len(lines), invoice.total_cents, method,
    )
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice | None:
    return db.session.get(Invoice, invoice_id)


def get_invoice_by_number(document_number: str) -> Invoice | None:
    return db.session.query(Invoice).filter_by(document_number=document_number).first()


def list_invoices(
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = 50,
) -> list[Invoice]:
    """Newest first; since/until are inclusive, UTC-naive."""
    query = db.session.query(Invoice)
    if since is not None:
        query = query.filter(Invoice.created_at >= since)
    if until is not None:
        query = query.filter(Invoice.created_at <= until)
    return query.order_by(Invoice.id.desc()).limit(limit).all()


def returned_quantities(invoice_id: int) -> dict[int, int]:
    """Cumulative returned quantity per invoice line id."""
    rows = (
        db.session.query(ReturnLine.invoice_line_id, db.func.sum(ReturnLine.quantity))
        .join(InvoiceLine, InvoiceLine.id == ReturnLine.invoice_line_id)
        .filter(InvoiceLine.invoice_id == invoice_id)
        .group_by(ReturnLine.invoice_line_id)
        .all()
    )
    return {line_id: int(qty or 0) for line_id, qty in rows}


def returnable_quantities(invoice: Invoice) -> dict[str, int]:
    """Remaining returnable units per SKU on an invoice."""
    returned = returned_quantities(invoice.id)
    return {
        line.sku: line.quantity - returned.get(line.id, 0)
        for line in invoice.lines
    }
