# Overview: In-session cart for one sale; enforces per-line quantity against current stock.

"""
Cart - ephemeral sale assembly

WHY: The cart is owned by one cashier session and never touches durable
stock. Membership in a cart reserves nothing; only finalize decrements stock,
and it re-reads every line against the database first.

RULES:
- One line per SKU; re-scanning a SKU increments the existing line
- A failing mutation leaves the cart exactly as it was
- Unit price is captured when the line is created and is not changed by
  re-scans; override_unit_price() is the only way to change it
- Stock is read through the injected lookup on every check, never cached
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .errors import InsufficientStock, InvalidRequest, NotFound
from .policies import NoAdjustmentPolicy, PricingPolicy
from ..validation import coerce_int, positive_int, price_cents


@dataclass
class CartLine:
    sku: str
    name: str
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class CartTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def compute_totals(lines, policy: PricingPolicy | None = None) -> CartTotals:
    """subtotal - discount + tax, with discount/tax delegated to the policy."""
    policy = policy or NoAdjustmentPolicy()
    lines = list(lines)
    subtotal = sum(line.quantity * line.unit_price_cents for line in lines)
    discount = min(max(0, int(policy.discount_cents(subtotal, lines))), subtotal)
    tax = max(0, int(policy.tax_cents(subtotal - discount, lines)))
    return CartTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        total_cents=subtotal - discount + tax,
    )


def _default_lookup(sku: str):
    from .catalog_service import get_item
    return get_item(sku)


@dataclass
class Cart:
    """Ordered, SKU-unique collection of lines for one sale session."""

    lookup: Callable[[str], object] = field(default=_default_lookup, repr=False)
    _lines: dict[str, CartLine] = field(default_factory=dict, repr=False)

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, sku: str) -> bool:
        return sku in self._lines

    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, sku: str) -> CartLine | None:
        return self._lines.get(sku)

    def add_line(self, sku: str, quantity: int = 1) -> CartLine:
        """
        Add quantity units of sku, merging into an existing line.

        Raises:
            InvalidRequest: quantity is not an integer >= 1
            NotFound: sku does not resolve to an active item
            InsufficientStock: existing + requested exceeds current stock
        """
        quantity = positive_int(quantity, "quantity")
        item = self._fetch(sku)

        existing = self._lines.get(sku)
        already = existing.quantity if existing else 0
        effective = already + quantity
        if effective > item.stock_qty:
            raise InsufficientStock(
                f"Only {item.stock_qty} of {sku} in stock",
                details={
                    "sku": sku,
                    "requested_quantity": effective,
                    "already_in_cart": already,
                    "available": item.stock_qty,
                },
            )

        if existing:
            existing.quantity = effective
            return existing

        line = CartLine(
            sku=item.sku,
            name=item.name,
            quantity=effective,
            unit_price_cents=item.selling_price_cents,
        )
        self._lines[sku] = line
        return line

    def update_line_qty(self, sku: str, quantity: int) -> CartLine | None:
        """Set a line's quantity; 0 removes the line and returns None."""
        quantity = coerce_int(quantity, "quantity")
        if quantity < 0:
            raise InvalidRequest("quantity must not be negative", details={"sku": sku, "value": quantity})

        line = self._lines.get(sku)
        if line is None:
            raise NotFound(f"{sku} is not in the cart", details={"sku": sku})

        if quantity == 0:
            del self._lines[sku]
            return None

        item = self._fetch(sku)
        if quantity > item.stock_qty:
            raise InsufficientStock(
                f"Only {item.stock_qty} of {sku} in stock",
                details={"sku": sku, "requested_quantity": quantity, "available": item.stock_qty},
            )

        line.quantity = quantity
        return line

    def override_unit_price(self, sku: str, unit_price_cents: int) -> CartLine:
        line = self._lines.get(sku)
        if line is None:
            raise NotFound(f"{sku} is not in the cart", details={"sku": sku})
        line.unit_price_cents = price_cents(unit_price_cents, "unit_price_cents")
        return line

    def remove_line(self, sku: str) -> None:
        self._lines.pop(sku, None)

    def clear(self) -> None:
        self._lines.clear()

    def totals(self, policy: PricingPolicy | None = None) -> CartTotals:
        return compute_totals(self._lines.values(), policy)

    def to_dict(self, policy: PricingPolicy | None = None) -> dict:
        return {
            "lines": [line.to_dict() for line in self._lines.values()],
            "totals": self.totals(policy).to_dict(),
        }

    def _fetch(self, sku: str):
        item = self.lookup(sku) if sku else None
        if item is None:
            raise NotFound(f"No item with code {sku!r}", details={"code": sku})
        return item
