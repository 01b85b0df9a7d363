from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from poscore.time_utils import to_utc_z
from .sales import _reject_update


class Return(db.Model):
    """
    Return document reversing part or all of an invoice.

    DESIGN PRINCIPLES:
    - Returns reference the original Invoice for traceability
    - ReturnLines reference original InvoiceLines so cumulative returned
      quantity per line can be enforced
    - Refund is priced from the ORIGINAL unit price, not the current catalog price
    - Restocking fee comes from the configured refund policy
    - Written once with the stock restoration and the cash/bank debit
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_returns_docnum"),
        db.Index("ix_returns_invoice_created", "invoice_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "RET-000042")
    document_number = db.Column(db.String(64), nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    refund_method = db.Column(db.String(32), nullable=False)
    cash_bank_account_id = db.Column(db.Integer, db.ForeignKey("cash_bank_accounts.id"), nullable=False, index=True)

    # Gross refund (sum of returned lines) minus restocking fee
    gross_refund_cents = db.Column(db.Integer, nullable=False)
    restocking_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_amount_cents = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.Text, nullable=True)

    processed_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    invoice = db.relationship("Invoice", backref=db.backref("returns", lazy=True))
    cash_bank_account = db.relationship("CashBankAccount")

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "invoice_id": self.invoice_id,
            "refund_method": self.refund_method,
            "cash_bank_account_id": self.cash_bank_account_id,
            "gross_refund_cents": self.gross_refund_cents,
            "restocking_fee_cents": self.restocking_fee_cents,
            "refund_amount_cents": self.refund_amount_cents,
            "reason": self.reason,
            "processed_by_user_id": self.processed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class ReturnLine(db.Model):
    """Returned quantity of one invoice line."""
    __tablename__ = "return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    invoice_line_id = db.Column(db.Integer, db.ForeignKey("invoice_lines.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_refund_cents = db.Column(db.Integer, nullable=False)

    return_doc = db.relationship("Return", backref=db.backref("lines", lazy=True, order_by="ReturnLine.id"))
    invoice_line = db.relationship("InvoiceLine", backref=db.backref("return_lines", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "invoice_line_id": self.invoice_line_id,
            "item_id": self.item_id,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_refund_cents": self.line_refund_cents,
        }


for _model in (Return, ReturnLine):
    event.listen(_model, "before_update", _reject_update)
