from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, to_iso_date, utcnow


class AdjustmentReason(str, Enum):
    """Why a stock mutation happened; stored on every inventory log row."""
    SALE = "sale"
    RESTOCK = "restock"
    DAMAGE = "damage"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


class StockScope(str, Enum):
    """
    Which counters an adjustment touches.

    AVAILABLE_ONLY: reservation release/consumption, physical count unchanged.
    BOTH:           physical receive/loss, both counters move together.
    TOTAL_ONLY:     count correction that must not change reservable stock.
    """
    AVAILABLE_ONLY = "available_only"
    BOTH = "both"
    TOTAL_ONLY = "total_only"


ADJUSTMENT_REASONS = tuple(r.value for r in AdjustmentReason)
STOCK_SCOPES = tuple(s.value for s in StockScope)


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class Product(db.Model):
    """
    Catalog product with the dual stock counters.

    COUNTERS:
    - stock: total physical units owned
    - available_stock: subset of stock free to sell/reserve

    INVARIANT: 0 <= available_stock <= stock after every commit. The CHECK
    constraints below are a backstop; the rule is enforced (and the clamp
    applied) by stock_ledger_service, the only writer of these columns.

    Products are soft-deleted (is_active=False) so inventory history keeps
    its references.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="stock_non_negative"),
        db.CheckConstraint("available_stock >= 0", name="available_non_negative"),
        db.CheckConstraint("available_stock <= stock", name="available_within_stock"),
        db.CheckConstraint("price >= 0", name="price_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_expiry_date", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    barcode = db.Column(db.String(128), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    available_stock = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def reserved_stock(self) -> int:
        return (self.stock or 0) - (self.available_stock or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} stock={self.stock} available={self.available_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "name": self.name,
            "price": money_str(self.price),
            "stock": self.stock,
            "available_stock": self.available_stock,
            "reserved_stock": self.reserved_stock,
            "expiry_date": to_iso_date(self.expiry_date),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryLog(db.Model):
    """
    Append-only audit row, one per committed counter mutation.

    quantity_change is the applied delta of the counter the scope is anchored
    on (stock for BOTH/TOTAL_ONLY, available_stock for AVAILABLE_ONLY), so it
    can differ from the requested delta when the available clamp kicks in.
    Rows are never updated or deleted.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.CheckConstraint(_in_list("reason", ADJUSTMENT_REASONS), name="reason_known"),
        db.CheckConstraint(_in_list("scope", STOCK_SCOPES), name="scope_known"),
        db.Index("ix_inventory_logs_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Opaque operator identity; null only for system-originated rows (e.g. checkout without operator)
    operator_id = db.Column(db.String(64), nullable=True, index=True)

    quantity_change = db.Column(db.Integer, nullable=False)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)
    available_before = db.Column(db.Integer, nullable=False)
    available_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(16), nullable=False, index=True)
    scope = db.Column(db.String(16), nullable=False, default=StockScope.BOTH.value)

    # Historical reference to the order that caused a sale row; no FK so deleting
    # a cancelled order never rewrites audit rows
    order_id = db.Column(db.Integer, nullable=True, index=True)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory_logs", lazy="dynamic"))

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "operator_id": self.operator_id,
            "quantity_change": self.quantity_change,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "available_before": self.available_before,
            "available_after": self.available_after,
            "reason": self.reason,
            "scope": self.scope,
            "order_id": self.order_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product and self.product is not None:
            data["product"] = {
                "id": self.product.id,
                "name": self.product.name,
                "barcode": self.product.barcode,
            }
        return data


class OutboundRecord(db.Model):
    """
    Dispatch / scan event keyed by barcode.

    product_id is null when the barcode did not match the catalog. The
    remaining_* columns snapshot the product's counters when the event was
    recorded; they are informational and never feed back into the counters.
    """
    __tablename__ = "outbound_records"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.Index("ix_outbound_records_barcode_outbound", "barcode", "outbound_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    barcode = db.Column(db.String(128), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    order_id = db.Column(db.Integer, nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)

    remaining_stock = db.Column(db.Integer, nullable=True)
    remaining_available_stock = db.Column(db.Integer, nullable=True)

    outbound_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "barcode": self.barcode,
            "product_id": self.product_id,
            "order_id": self.order_id,
            "quantity": self.quantity,
            "remaining_stock": self.remaining_stock,
            "remaining_available_stock": self.remaining_available_stock,
            "outbound_at": to_utc_z(self.outbound_at),
            "product_name": product.name if product else None,
            "product_price": money_str(product.price) if product else None,
            "product_stock": product.stock if product else None,
        }
