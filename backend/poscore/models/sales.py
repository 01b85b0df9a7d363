from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from poscore.time_utils import to_utc_z


class ImmutableRecordError(Exception):
    """Raised when code tries to UPDATE a finalized invoice or return row."""


class Invoice(db.Model):
    """
    Finalized sale document.

    WHY: An invoice is written exactly once, inside the same transaction that
    decrements stock and credits the cash/bank account. It is never edited
    afterwards; corrections happen through Return documents.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_invoices_docnum"),
        db.Index("ix_invoices_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "INV-000123")
    document_number = db.Column(db.String(64), nullable=False)

    # CASH, CARD, UPI, BANK_TRANSFER
    payment_method = db.Column(db.String(32), nullable=False)
    cash_bank_account_id = db.Column(db.Integer, db.ForeignKey("cash_bank_accounts.id"), nullable=False, index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    cash_bank_account = db.relationship("CashBankAccount")

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "payment_method": self.payment_method,
            "cash_bank_account_id": self.cash_bank_account_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """Line on an invoice; name and prices are snapshots taken at finalize time."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "sku", name="uq_invoice_lines_invoice_sku"),
        db.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    # Share of the invoice total after discount and tax; refunds are paid from it
    line_net_cents = db.Column(db.Integer, nullable=False)

    # Cost at sale time, kept for margin reporting after catalog edits
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("lines", lazy=True, order_by="InvoiceLine.line_number"),
    )
    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "line_number": self.line_number,
            "item_id": self.item_id,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "line_net_cents": self.line_net_cents,
            "unit_cost_cents": self.unit_cost_cents,
        }


def _reject_update(mapper, connection, target):
    # Collection changes (e.g. a Return appended through a backref) mark the
    # parent dirty without touching its columns.
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(
        f"{target.__class__.__name__} {target.id} is immutable once created"
    )


for _model in (Invoice, InvoiceLine):
    event.listen(_model, "before_update", _reject_update)
