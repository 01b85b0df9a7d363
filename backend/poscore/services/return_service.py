"""
Return Processing Service

WHY: A return is the exact inverse of a sale's stock effect plus a
compensating cash/bank debit. The refund is priced from what the customer
actually paid for the invoice line (its share of the grand total after
discount and tax), not the current catalog price. Returning every unit of a
line refunds that share exactly.

DESIGN PRINCIPLES:
- Returns reference the original Invoice and its lines for traceability
- Cumulative returned quantity per invoice line never exceeds the invoiced
  quantity (OverReturn otherwise), checked under the same lock as the write
- Stock restoration, refund debit and the Return record are one transaction
- Restocking fees come from the refund policy (deducted from the refund)
- Immutable audit trail (completed returns are never modified)
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Invoice, Item, Return, ReturnLine
from poscore.time_utils import utcnow
from . import catalog_service, ledger_service
from .concurrency import begin_serialized, lock_for_update, run_in_unit_of_work
from .document_service import RETURN_DOCUMENT_TYPE, next_document_number
from .errors import InvalidRequest, NotFound, OverReturn
from .invoice_service import returned_quantities
from .policies import RefundPolicy, prorate_cents, refund_policy_from_config
from ..validation import positive_int


@dataclass(frozen=True)
class ReturnLineRequest:
    sku: str
    quantity: int


def _normalize_lines(returned_lines) -> dict[str, int]:
    """Accept dicts or ReturnLineRequest; merge duplicate SKUs by summing."""
    if not returned_lines:
        raise InvalidRequest("At least one line is required to process a return")

    merged: dict[str, int] = {}
    for raw in returned_lines:
        if isinstance(raw, ReturnLineRequest):
            sku, quantity = raw.sku, raw.quantity
        elif isinstance(raw, dict):
            sku, quantity = raw.get("sku"), raw.get("quantity")
        else:
            raise InvalidRequest("Return lines must be {sku, quantity} objects")

        if not isinstance(sku, str) or not sku.strip():
            raise InvalidRequest("sku is required for every return line")
        sku = sku.strip()
        merged[sku] = merged.get(sku, 0) + positive_int(quantity, "quantity")
    return merged


def process_return(
    invoice_id: int,
    returned_lines,
    refund_method: str,
    *,
    user_id: int | None = None,
    account_id: int | None = None,
    reason: str | None = None,
    refund_policy: RefundPolicy | None = None,
) -> Return:
    """
    Restore stock for returned quantities and debit the refund.

    Raises:
        InvalidRequest: no lines, quantity < 1, unknown refund method
        NotFound: invoice, SKU on the invoice, or refund account missing
        OverReturn: cumulative returned quantity would exceed the invoiced quantity
        PersistenceUnavailable: storage stayed locked/unreachable
    """
    requested = _normalize_lines(returned_lines)
    method = ledger_service.normalize_payment_method(refund_method)
    policy = refund_policy or refund_policy_from_config(current_app.config)

    def _op() -> Return:
        begin_serialized()

        invoice = lock_for_update(
            db.session.query(Invoice).filter_by(id=invoice_id)
        ).populate_existing().first()
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})

        lines_by_sku = {line.sku: line for line in invoice.lines}
        unknown = [sku for sku in requested if sku not in lines_by_sku]
        if unknown:
            raise NotFound(
                f"Not on invoice {invoice.document_number}: {', '.join(unknown)}",
                details={"invoice_id": invoice.id, "skus": unknown},
            )

        already = returned_quantities(invoice.id)
        over = []
        for sku, quantity in requested.items():
            line = lines_by_sku[sku]
            previously = already.get(line.id, 0)
            if previously + quantity > line.quantity:
                over.append({
                    "sku": sku,
                    "invoiced_quantity": line.quantity,
                    "already_returned": previously,
                    "requested_quantity": quantity,
                    "returnable": line.quantity - previously,
                })
        if over:
            raise OverReturn(
                "Return exceeds the invoiced quantity",
                details={"invoice_id": invoice.id, "items": over},
            )

        account = ledger_service.resolve_account(method, account_id)

        return_lines = []
        for sku, quantity in requested.items():
            line = lines_by_sku[sku]
            return_lines.append(ReturnLine(
                invoice_line_id=line.id,
                item_id=line.item_id,
                sku=sku,
                quantity=quantity,
                unit_price_cents=line.unit_price_cents,
                line_refund_cents=prorate_cents(
                    line.line_net_cents, line.quantity, already.get(line.id, 0), quantity
                ),
            ))

        gross = sum(rl.line_refund_cents for rl in return_lines)
        fee = min(max(0, int(policy.fee_cents(gross, return_lines))), gross)

        return_doc = Return(
            document_number=next_document_number(document_type=RETURN_DOCUMENT_TYPE, prefix="RET"),
            invoice_id=invoice.id,
            refund_method=method,
            cash_bank_account_id=account.id,
            gross_refund_cents=gross,
            restocking_fee_cents=fee,
            refund_amount_cents=gross - fee,
            reason=reason,
            processed_by_user_id=user_id,
            created_at=utcnow(),
        )
        db.session.add(return_doc)
        db.session.flush()

        for rl in return_lines:
            rl.return_id = return_doc.id
            db.session.add(rl)
            item = db.session.get(Item, rl.item_id)
            if item is None:
                raise NotFound(f"Item {rl.sku} not found", details={"sku": rl.sku})
            catalog_service.increment_stock(
                item,
                rl.quantity,
                invoice_id=invoice.id,
                return_id=return_doc.id,
                actor_user_id=user_id,
                note=f"Return {return_doc.document_number} from {invoice.document_number}",
            )

        ledger_service.debit(
            account,
            return_doc.refund_amount_cents,
            reference_type="RETURN",
            reference_id=return_doc.id,
            actor_user_id=user_id,
            note=f"Refund {return_doc.document_number}",
        )
        return return_doc

    try:
        return_doc = run_in_unit_of_work(_op)
    except OverReturn as exc:
        current_app.logger.warning("Return rejected for invoice %s: %s", invoice_id, exc.details)
        raise

    current_app.logger.info(
        "Return %s processed for invoice %s: refund %d cents (fee %d), %s",
        return_doc.document_number, invoice_id,
        return_doc.refund_amount_cents, return_doc.restocking_fee_cents, method,
    )
    return return_doc


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: int) -> Return | None:
    """Get return by ID."""
    return db.session.get(Return, return_id)


def list_invoice_returns(invoice_id: int) -> list[Return]:
    """Get all returns for an invoice, oldest first."""
    return db.session.query(Return).filter_by(invoice_id=invoice_id).order_by(Return.id).all()
