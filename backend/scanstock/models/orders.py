from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


ORDER_STATUSES = tuple(s.value for s in OrderStatus)


class Order(db.Model):
    """
    Sales order header.

    Created together with its lines (status=completed) by order_service.fulfill_order;
    afterwards only status may change. final_amount = total_amount - discount_amount.

    idempotency_key is an optional caller-supplied token; the unique constraint is what
    makes a resubmitted checkout return the first order instead of selling twice.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("total_amount >= 0", name="total_non_negative"),
        db.CheckConstraint("discount_amount >= 0", name="discount_non_negative"),
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'cancelled', 'refunded')",
            name="status_known",
        ),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "ORD1718000000000K3ZQ"
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    idempotency_key = db.Column(db.String(128), nullable=True, unique=True)

    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=OrderStatus.PENDING.value, index=True)

    operator_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "idempotency_key": self.idempotency_key,
            "total_amount": money_str(self.total_amount),
            "discount_amount": money_str(self.discount_amount),
            "final_amount": money_str(self.final_amount),
            "status": self.status,
            "operator_id": self.operator_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """Individual line on an order; immutable once the order is committed."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.CheckConstraint("price >= 0", name="price_non_negative"),
        db.Index("ix_order_items_barcode", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    barcode = db.Column(db.String(128), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    order = db.relationship("Order", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "barcode": self.barcode,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "price": money_str(self.price),
            "quantity": self.quantity,
            "subtotal": money_str(self.subtotal),
            "created_at": to_utc_z(self.created_at),
        }
