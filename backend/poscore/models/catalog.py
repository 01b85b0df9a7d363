from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z


class Item(db.Model):
    """
    Catalog item (the source of truth for price and stock).

    SKU DESIGN DECISION:
    Item.sku is the scanned identifier. It is globally unique and matched
    exactly (case-sensitive) by the barcode resolver.

    STOCK:
    stock_qty is a mutable counter shared by every terminal. The core only
    changes it through guarded conditional UPDATEs (see catalog_service),
    and the CHECK constraint rejects any write that would drive it negative.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_items_sku"),
        db.CheckConstraint("stock_qty >= 0", name="ck_items_stock_non_negative"),
        db.CheckConstraint("selling_price_cents >= 0", name="ck_items_selling_price_non_negative"),
        db.CheckConstraint("cost_price_cents >= 0", name="ck_items_cost_price_non_negative"),
        db.Index("ix_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_qty = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} sku={self.sku!r} name={self.name!r} stock_qty={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "stock_qty": self.stock_qty,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit of stock mutations made by sales and returns.

    Each row is written in the same DB transaction as the UPDATE it records,
    so stock_after always matches the counter the transaction committed.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    # SALE, RETURN
    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=True, index=True)

    actor_user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "invoice_id": self.invoice_id,
            "return_id": self.return_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
