# Overview: StockLedger - the only writer of Product.stock / Product.available_stock.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import InsufficientAvailableStock, InsufficientStock, NotFound, ValidationError
from ..extensions import db
from ..models import Product
from .concurrency import lock_for_update
"""
Stock Ledger Invariants (authoritative)

Counters:
- stock: total physical units owned; never negative.
- available_stock: units free to sell/reserve; never negative, never above stock.

Mutation rules (apply_delta):
- new stock < 0               -> InsufficientStock, nothing written
- new available < 0           -> InsufficientAvailableStock, nothing written
- new available > new stock   -> available clamped down to new stock (reconciliation, not an error)

Locking:
- Callers resolve products with lock=True inside a unit of work opened by
  concurrency.begin_write(), so two mutations of the same row never interleave.
- Nothing here commits; the caller appends the audit row and commits both together.
"""


ProductRef = int | str


@dataclass(frozen=True)
class StockSnapshot:
    product_id: int
    stock_before: int
    stock_after: int
    available_before: int
    available_after: int

    @property
    def stock_delta(self) -> int:
        return self.stock_after - self.stock_before

    @property
    def available_delta(self) -> int:
        return self.available_after - self.available_before

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "available_before": self.available_before,
            "available_after": self.available_after,
        }


def normalize_barcode(value) -> str:
    if value is None:
        raise ValidationError("barcode is required")
    barcode = str(value).strip()
    if not barcode:
        raise ValidationError("barcode cannot be blank")
    return barcode


def resolve_product(
    product_ref: ProductRef,
    *,
    lock: bool = False,
    require_active: bool = False,
) -> Product:
    """
    Resolve a product by id (int) or barcode (str).

    Raises NotFound when nothing matches; datastore failures propagate as
    SQLAlchemy errors for the unit of work to translate.
    """
    if isinstance(product_ref, bool) or product_ref is None:
        raise ValidationError("product id or barcode is required")

    query = db.session.query(Product)
    if isinstance(product_ref, int):
        query = query.filter(Product.id == product_ref)
        label = f"id {product_ref}"
    else:
        barcode = normalize_barcode(product_ref)
        query = query.filter(Product.barcode == barcode)
        label = f"barcode {barcode!r}"

    if lock:
        query = lock_for_update(query)
        # The row may already sit in the identity map from an earlier read; re-read it under the lock
        query = query.populate_existing()

    product = query.first()
    if product is None:
        raise NotFound(f"Product with {label} not found")
    if require_active and not product.is_active:
        raise NotFound(f"Product with {label} is inactive")
    return product


def lock_products(product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Lock several product rows in ascending id order.

    A stable order keeps two multi-line orders over overlapping products from
    deadlocking each other.
    """
    locked: dict[int, Product] = {}
    for product_id in sorted(set(product_ids)):
        locked[product_id] = resolve_product(product_id, lock=True, require_active=True)
    return locked


def apply_delta(product: Product, delta_total: int, delta_available: int) -> StockSnapshot:
    """
    Apply signed deltas to a (locked) product's counters.

    Returns the before/after snapshot. Raises without touching the row when
    either counter would go negative.
    """
    stock_before = int(product.stock or 0)
    available_before = int(product.available_stock or 0)

    stock_after = stock_before + int(delta_total)
    if stock_after < 0:
        raise InsufficientStock(
            f"Insufficient stock for {product.barcode}: requested change {delta_total}, on hand {stock_before}",
            details={
                "product_id": product.id,
                "barcode": product.barcode,
                "stock": stock_before,
                "requested_change": int(delta_total),
            },
        )

    available_after = available_before + int(delta_available)
    if available_after < 0:
        raise InsufficientAvailableStock(
            f"Insufficient available stock for {product.barcode}: requested change {delta_available}, "
            f"available {available_before}",
            details={
                "product_id": product.id,
                "barcode": product.barcode,
                "available_stock": available_before,
                "requested_change": int(delta_available),
            },
        )

    if available_after > stock_after:
        available_after = stock_after

    product.stock = stock_after
    product.available_stock = available_after
    db.session.flush()

    return StockSnapshot(
        product_id=product.id,
        stock_before=stock_before,
        stock_after=stock_after,
        available_before=available_before,
        available_after=available_after,
    )


def apply(product_ref: ProductRef, delta_total: int, delta_available: int) -> StockSnapshot:
    """Resolve (with lock) and mutate in one call; the caller owns the transaction."""
    product = resolve_product(product_ref, lock=True, require_active=True)
    return apply_delta(product, delta_total, delta_available)


def find_invariant_violations() -> list[dict]:
    """Read-only sweep for rows breaking 0 <= available_stock <= stock."""
    rows = (
        db.session.query(Product)
        .filter(
            (Product.stock < 0)
            | (Product.available_stock < 0)
            | (Product.available_stock > Product.stock)
        )
        .order_by(Product.id.asc())
        .all()
    )
    return [
        {
            "product_id": p.id,
            "barcode": p.barcode,
            "stock": p.stock,
            "available_stock": p.available_stock,
        }
        for p in rows
    ]
