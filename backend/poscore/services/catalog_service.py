# Overview: Service-layer operations for the item catalog; stock reads and guarded stock mutations.

"""
Catalog stock invariants (authoritative)

- Item.stock_qty >= 0 at all times. Every decrement is a single conditional
  UPDATE (... WHERE stock_qty >= :qty); a zero row count means the stock moved
  underneath the caller and nothing was written.
- Mutators only flush. They never commit, so the caller composes them into
  its own unit of work (finalize, return) and a rollback undoes them.
- Each mutation appends a StockMovement in the same transaction.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Item, StockMovement
from .concurrency import lock_for_update
from .errors import InvalidRequest, NotFound, StockChanged


MOVEMENT_SALE = "SALE"
MOVEMENT_RETURN = "RETURN"


def get_item(sku: str) -> Item | None:
    """Fetch an active item by exact SKU, re-reading its row from the database."""
    if not sku:
        return None
    return (
        db.session.query(Item)
        .filter(Item.sku == sku, Item.is_active.is_(True))
        .populate_existing()
        .first()
    )


def get_items_for_update(skus: list[str]) -> dict[str, Item]:
    """Load and lock the rows for a set of SKUs (fresh values, never the identity-map copy)."""
    if not skus:
        return {}
    query = db.session.query(Item).filter(Item.sku.in_(skus))
    items = lock_for_update(query).populate_existing().all()
    return {item.sku: item for item in items}


def decrement_stock(
    item: Item,
    quantity: int,
    *,
    invoice_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Remove quantity units from stock.

    Raises StockChanged when the guarded UPDATE matches no row, i.e. the
    committed stock is lower than quantity.
    """
    _require_positive(quantity)

    stmt = (
        update(Item)
        .where(Item.id == item.id, Item.stock_qty >= quantity)
        .values(stock_qty=Item.stock_qty - quantity, version_id=Item.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        available = _read_stock(item.id)
        raise StockChanged(
            f"Stock for {item.sku} changed, only {available} available",
            details={"items": [{
                "sku": item.sku,
                "requested_quantity": quantity,
                "available": available,
            }]},
        )

    return _record_movement(
        item,
        movement_type=MOVEMENT_SALE,
        quantity_delta=-quantity,
        invoice_id=invoice_id,
        actor_user_id=actor_user_id,
        note=note,
    )


def increment_stock(
    item: Item,
    quantity: int,
    *,
    invoice_id: int | None = None,
    return_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """Put quantity units back into stock."""
    _require_positive(quantity)

    stmt = (
        update(Item)
        .where(Item.id == item.id)
        .values(stock_qty=Item.stock_qty + quantity, version_id=Item.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise NotFound(f"Item {item.sku} not found", details={"sku": item.sku})

    return _record_movement(
        item,
        movement_type=MOVEMENT_RETURN,
        quantity_delta=quantity,
        invoice_id=invoice_id,
        return_id=return_id,
        actor_user_id=actor_user_id,
        note=note,
    )


def get_stock_movements(item_id: int, limit: int = 50) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(item_id=item_id)
        .order_by(StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def _require_positive(quantity: int) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise InvalidRequest("Stock adjustment quantity must be a positive integer")


def _read_stock(item_id: int) -> int:
    value = db.session.query(Item.stock_qty).filter(Item.id == item_id).scalar()
    return int(value or 0)


def _record_movement(
    item: Item,
    *,
    movement_type: str,
    quantity_delta: int,
    invoice_id: int | None = None,
    return_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    item_id = item.id
    # The UPDATE bypassed the ORM, drop the cached column values
    db.session.expire(item)

    movement = StockMovement(
        item_id=item_id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        stock_after=_read_stock(item_id),
        invoice_id=invoice_id,
        return_id=return_id,
        actor_user_id=actor_user_id,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement
