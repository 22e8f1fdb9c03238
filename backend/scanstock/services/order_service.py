# Overview: OrderFulfillment - atomic multi-line checkout plus order lifecycle.

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import AdjustmentReason, Order, OrderLine, OrderStatus, Product, StockScope
from ..validation import coerce_money, coerce_positive_int, enforce_rules_order
from .adjustment_log_service import record_adjustment
from .concurrency import begin_write, unit_of_work
from .outbound_service import build_outbound_record
from .stock_ledger_service import apply_delta, lock_products, normalize_barcode
"""
Fulfillment Semantics (authoritative)

One call = one transaction:
1. validate cart and amounts (no storage touched)
2. idempotency_key seen before -> return that order (same cart) or Conflict
3. resolve every barcode, lock product rows in ascending id order
4. insert Order(status=completed) and its lines
5. per line: ledger (-q, -q), one 'sale' inventory log, optional outbound row
6. commit

Any NotFound / InsufficientStock / InsufficientAvailableStock rolls back the
whole order. Nothing is retried.

Order status machine:
  pending   -> completed | cancelled
  completed -> cancelled | refunded
  cancelled, refunded: terminal
Status changes never move stock.
"""


ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: {OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class CartLine:
    barcode: str
    name: str | None
    price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


def generate_order_number() -> str:
    prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "ORD")
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(4))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def parse_cart_lines(items) -> list[CartLine]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")

    lines: list[CartLine] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        try:
            barcode = normalize_barcode(item.get("barcode"))
        except ValidationError as exc:
            raise ValidationError(f"items[{index}]: {exc.message}")
        name = item.get("name")
        price = coerce_money(item.get("price"), f"items[{index}].price")
        if price < 0:
            raise ValidationError(f"items[{index}].price must be >= 0")
        lines.append(CartLine(
            barcode=barcode,
            name=(str(name).strip() or None) if name is not None else None,
            price=price,
            quantity=coerce_positive_int(item.get("quantity"), f"items[{index}].quantity"),
        ))
    return lines


def _cart_fingerprint(total_amount: Decimal, discount_amount: Decimal, pairs) -> tuple:
    return (
        Decimal(total_amount).quantize(Decimal("0.01")),
        Decimal(discount_amount).quantize(Decimal("0.01")),
        tuple(sorted(pairs)),
    )


def _ensure_same_cart(existing: Order, lines: list[CartLine], total_amount, discount_amount) -> None:
    requested = _cart_fingerprint(total_amount, discount_amount, [(l.barcode, l.quantity) for l in lines])
    stored = _cart_fingerprint(
        existing.total_amount,
        existing.discount_amount,
        [(l.barcode, l.quantity) for l in existing.lines],
    )
    if requested != stored:
        raise ConflictError(
            "Idempotency key was already used for a different order",
            details={"idempotency_key": existing.idempotency_key, "order_id": existing.id},
        )


def _find_by_idempotency_key(key: str) -> Order | None:
    return db.session.query(Order).filter(Order.idempotency_key == key).first()


def _resolve_cart_products(lines: list[CartLine]) -> dict[str, Product]:
    barcodes = sorted({l.barcode for l in lines})
    found = {
        p.barcode: p
        for p in db.session.query(Product)
        .filter(Product.barcode.in_(barcodes), Product.is_active.is_(True))
        .all()
    }
    missing = [b for b in barcodes if b not in found]
    if missing:
        raise NotFound(
            f"Product with barcode {missing[0]!r} not found",
            details={"missing_barcodes": missing},
        )

    locked = lock_products(p.id for p in found.values())
    return {p.barcode: p for p in locked.values()}


def fulfill_order(
    items,
    total_amount,
    discount_amount=0,
    final_amount=None,
    *,
    operator_id: str | None = None,
    idempotency_key: str | None = None,
    record_outbound: bool = False,
) -> Order:
    """
    Commit a cart as a completed order, decrementing stock for every line.

    Returns the new Order, or the previously committed one when the same
    idempotency_key and cart are resubmitted.
    """
    lines = parse_cart_lines(items)
    total = coerce_money(total_amount, "totalAmount")
    discount = coerce_money(discount_amount if discount_amount is not None else 0, "discountAmount")
    final = coerce_money(final_amount, "finalAmount") if final_amount is not None else None
    enforce_rules_order(total, discount, final)

    key = str(idempotency_key).strip() if idempotency_key is not None else None
    if key is not None and (not key or len(key) > 128):
        raise ValidationError("idempotencyKey must be 1-128 characters")

    try:
        return _fulfill_locked(lines, total, discount, operator_id, key, record_outbound)
    except ConflictError:
        if key is None:
            raise
        # Another request with the same key committed first; hand back its order
        existing = _find_by_idempotency_key(key)
        if existing is None:
            raise
        _ensure_same_cart(existing, lines, total, discount)
        db.session.rollback()
        return existing


def _fulfill_locked(
    lines: list[CartLine],
    total: Decimal,
    discount: Decimal,
    operator_id: str | None,
    key: str | None,
    record_outbound: bool,
) -> Order:
    with unit_of_work("Order fulfillment"):
        begin_write()

        if key is not None:
            existing = _find_by_idempotency_key(key)
            if existing is not None:
                _ensure_same_cart(existing, lines, total, discount)
                db.session.rollback()
                current_app.logger.info("Replayed order %s for idempotency key %s", existing.order_number, key)
                return existing

        products = _resolve_cart_products(lines)

        order = Order(
            order_number=generate_order_number(),
            idempotency_key=key,
            total_amount=total,
            discount_amount=discount,
            final_amount=total - discount,
            status=OrderStatus.COMPLETED.value,
            operator_id=operator_id,
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            product = products[line.barcode]
            order.lines.append(OrderLine(
                barcode=line.barcode,
                product_id=product.id,
                product_name=line.name or product.name,
                price=line.price,
                quantity=line.quantity,
                subtotal=line.subtotal,
            ))

            snapshot = apply_delta(product, -line.quantity, -line.quantity)
            record_adjustment(
                snapshot=snapshot,
                reason=AdjustmentReason.SALE,
                scope=StockScope.BOTH,
                operator_id=operator_id,
                order_id=order.id,
                note=f"Order {order.order_number}",
            )

            if record_outbound:
                build_outbound_record(line.barcode, product, line.quantity, order_id=order.id)

        db.session.commit()

    current_app.logger.info(
        "Fulfilled order %s: %s line(s), final amount %s",
        order.order_number,
        len(lines),
        order.final_amount,
    )
    return order


def list_orders(page: int = 1, per_page: int = 50, status: str | None = None) -> tuple[list[Order], int]:
    q = db.session.query(Order)
    if status is not None:
        q = q.filter(Order.status == _parse_status(status).value)
    total = q.count()
    orders = (
        q.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return orders, total


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


def _parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid status '{value}'. Must be one of: {allowed}")


def update_order_status(order_id: int, new_status) -> Order:
    """Move an order along the status machine. Never touches stock."""
    target = _parse_status(new_status)

    with unit_of_work("Order status change"):
        order = get_order(order_id)
        current = OrderStatus(order.status)
        if current == target:
            return order
        if target not in ALLOWED_TRANSITIONS[current]:
            raise ConflictError(
                f"Cannot change order status from {current.value} to {target.value}",
                details={"from": current.value, "to": target.value},
            )
        order.status = target.value
        db.session.commit()

    current_app.logger.info("Order %s status %s -> %s", order.order_number, current.value, target.value)
    return order


def delete_order(order_id: int) -> None:
    """Delete a cancelled order and its lines; inventory logs keep their order_id."""
    with unit_of_work("Order deletion"):
        order = get_order(order_id)
        if order.status != OrderStatus.CANCELLED.value:
            raise ConflictError(
                "Only cancelled orders can be deleted",
                details={"status": order.status},
            )
        number = order.order_number
        db.session.delete(order)
        db.session.commit()

    current_app.logger.info("Deleted cancelled order %s", number)
