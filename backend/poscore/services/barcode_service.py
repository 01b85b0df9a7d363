# Overview: Service-layer operations for barcode resolution, item search and label requests.

"""
Barcode Service - scan resolution and label requests

WHY: A scan must resolve to exactly one item or fail loudly. Silent fuzzy
fallbacks put the wrong product on a receipt.

MODES:
- Scan mode (resolve): exact, case-sensitive SKU match. Only the scanner's
  trailing CR/LF and surrounding spaces are trimmed.
- Search mode (search): case-insensitive substring match on the item name.
  Search is a separate lookup the UI must choose explicitly; resolve()
  never falls back to it.

LABELS:
Rendering and printing happen outside the core. build_label_request()
only validates that a SKU can be encoded in the requested symbology and
returns the immutable request handed to the renderer.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from ..extensions import db
from ..models import Item
from .errors import InvalidRequest, NotFound
from ..validation import positive_int


MAX_LABEL_COPIES = 500

_CODE39_PATTERN = re.compile(r"^[0-9A-Z \-.$/+%]+$")
_DIGITS_PATTERN = re.compile(r"[0-9]+")


class BarcodeFormat(str, enum.Enum):
    CODE128 = "CODE128"
    CODE39 = "CODE39"
    EAN13 = "EAN13"
    UPC = "UPC"

    @classmethod
    def parse(cls, value) -> "BarcodeFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise InvalidRequest(
                f"Unsupported barcode format {value!r}",
                details={"allowed": [fmt.value for fmt in cls]},
            )


@dataclass(frozen=True)
class LabelRequest:
    sku: str
    name: str
    barcode_format: BarcodeFormat
    copies: int
    encoded_value: str

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "barcode_format": self.barcode_format.value,
            "copies": self.copies,
            "encoded_value": self.encoded_value,
        }


def normalize_code(code: str | None) -> str:
    """Trim scanner suffixes; case is significant and preserved."""
    return (code or "").strip()


def resolve(code: str | None) -> Item:
    """
    Resolve a scanned/typed code to exactly one active item.

    Raises NotFound naming the failed code. Read-only.
    """
    normalized = normalize_code(code)
    if not normalized:
        raise NotFound("Empty barcode", details={"code": code or ""})

    item = (
        db.session.query(Item)
        .filter(Item.sku == normalized, Item.is_active.is_(True))
        .populate_existing()
        .first()
    )
    if item is None:
        raise NotFound(f"No item found for barcode {normalized}", details={"code": normalized})
    return item


def search(query: str | None, limit: int = 20) -> list[Item]:
    """Case-insensitive substring search on item names (search mode only)."""
    term = (query or "").strip()
    if not term:
        return []

    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return (
        db.session.query(Item)
        .filter(
            Item.is_active.is_(True),
            Item.name.ilike(f"%{escaped}%", escape="\\"),
        )
        .order_by(Item.name, Item.id)
        .limit(max(1, limit))
        .all()
    )


# =============================================================================
# SYMBOLOGY VALIDATION
# =============================================================================

def gtin_check_digit(digits: str) -> int:
    """Mod-10 check digit shared by EAN-13 and UPC-A (weights 3,1 from the right)."""
    if not _DIGITS_PATTERN.fullmatch(digits):
        raise InvalidRequest("Check digits need ASCII digits 0-9", details={"sku": digits})
    total = 0
    for i, ch in enumerate(reversed(digits)):
        total += int(ch) * (3 if i % 2 == 0 else 1)
    return (10 - total % 10) % 10


def encode_for_format(value: str, barcode_format: BarcodeFormat) -> str:
    """
    Return the value the renderer should encode, or raise InvalidRequest.

    EAN13 accepts 12 digits (check digit appended) or 13 with a valid check
    digit; UPC accepts 11 or 12 digits the same way.
    """
    if barcode_format is BarcodeFormat.CODE128:
        if not value or any(ord(ch) < 32 or ord(ch) > 126 for ch in value):
            raise InvalidRequest("CODE128 needs printable ASCII", details={"sku": value})
        return value

    if barcode_format is BarcodeFormat.CODE39:
        if not _CODE39_PATTERN.match(value):
            raise InvalidRequest(
                "CODE39 supports 0-9, A-Z, space and - . $ / + %",
                details={"sku": value},
            )
        return value

    body_length = 12 if barcode_format is BarcodeFormat.EAN13 else 11
    if not _DIGITS_PATTERN.fullmatch(value) or len(value) not in (body_length, body_length + 1):
        raise InvalidRequest(
            f"{barcode_format.value} needs {body_length} or {body_length + 1} digits",
            details={"sku": value},
        )
    if len(value) == body_length:
        return value + str(gtin_check_digit(value))
    if int(value[-1]) != gtin_check_digit(value[:-1]):
        raise InvalidRequest(f"Invalid {barcode_format.value} check digit", details={"sku": value})
    return value


def build_label_request(sku: str, barcode_format=None, copies=1, *, default_format: str = "CODE128") -> LabelRequest:
    item = resolve(sku)
    fmt = BarcodeFormat.parse(barcode_format or default_format)
    copies = positive_int(copies, "copies")
    if copies > MAX_LABEL_COPIES:
        raise InvalidRequest(f"copies must be at most {MAX_LABEL_COPIES}", details={"copies": copies})

    return LabelRequest(
        sku=item.sku,
        name=item.name,
        barcode_format=fmt,
        copies=copies,
        encoded_value=encode_for_format(item.sku, fmt),
    )
