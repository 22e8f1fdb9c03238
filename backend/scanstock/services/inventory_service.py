# Overview: AdjustmentService - manual single-product stock adjustments.

# backend/scanstock/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Product, InventoryLog, AdjustmentReason, StockScope
from ..validation import coerce_positive_int, coerce_signed_int
from .adjustment_log_service import record_adjustment
from .concurrency import begin_write, unit_of_work
from .stock_ledger_service import ProductRef, StockSnapshot, apply_delta, resolve_product
"""
Manual Adjustment Semantics (authoritative)

A request is one tagged value: AdjustmentRequest(mode, quantity, scope, reason, operator).

mode -> signed delta for each counter the scope covers:
- add:      +quantity
- subtract: -quantity
- set:      target - current
            (scope=both reconciles available to min(target, available), so
             stock=10/available=10 set to 5 gives 5/5)

scope:
- available_only (default): only available_stock moves
- both:                     stock and available_stock move together
- total_only:               only stock moves; available is clamped if it
                            would exceed the new stock

Every successful adjustment writes exactly one InventoryLog row in the same
transaction as the counter change.
"""


class AdjustMode(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


DEFAULT_SCOPE = StockScope.AVAILABLE_ONLY


def _parse_enum(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {allowed}")


def _require_operator(operator_id) -> str:
    if operator_id is None or str(operator_id).strip() == "":
        raise ValidationError("operator_id is required")
    operator = str(operator_id).strip()
    if len(operator) > 64:
        raise ValidationError("operator_id exceeds max length 64")
    return operator


@dataclass(frozen=True)
class AdjustmentRequest:
    mode: AdjustMode
    quantity: int
    reason: AdjustmentReason
    operator_id: str
    scope: StockScope = DEFAULT_SCOPE
    note: str | None = None

    @classmethod
    def build(
        cls,
        *,
        mode,
        quantity,
        reason,
        operator_id,
        scope=None,
        note: str | None = None,
    ) -> "AdjustmentRequest":
        """Validate raw values into a request. Raises ValidationError."""
        return cls(
            mode=_parse_enum(AdjustMode, mode, "mode"),
            quantity=coerce_positive_int(quantity, "quantity"),
            reason=_parse_enum(AdjustmentReason, reason, "reason"),
            operator_id=_require_operator(operator_id),
            scope=DEFAULT_SCOPE if scope is None else _parse_enum(StockScope, scope, "scope"),
            note=(str(note).strip()[:255] or None) if note is not None else None,
        )

    @classmethod
    def from_delta(
        cls,
        *,
        quantity_change,
        reason,
        operator_id,
        scope=None,
        note: str | None = None,
    ) -> "AdjustmentRequest":
        """Signed-change form: +n is an add, -n a subtract, zero is rejected."""
        change = coerce_signed_int(quantity_change, "quantity_change")
        if change == 0:
            raise ValidationError("quantity_change cannot be 0")
        return cls.build(
            mode=AdjustMode.ADD if change > 0 else AdjustMode.SUBTRACT,
            quantity=abs(change),
            reason=reason,
            operator_id=operator_id,
            scope=scope,
            note=note,
        )

    def deltas(self, product: Product) -> tuple[int, int]:
        """(delta_total, delta_available) for the given current counters."""
        stock = int(product.stock or 0)
        available = int(product.available_stock or 0)

        if self.mode == AdjustMode.SET:
            if self.scope == StockScope.AVAILABLE_ONLY:
                return 0, self.quantity - available
            if self.scope == StockScope.TOTAL_ONLY:
                return self.quantity - stock, 0
            return self.quantity - stock, min(self.quantity, available) - available

        signed = self.quantity if self.mode == AdjustMode.ADD else -self.quantity
        if self.scope == StockScope.AVAILABLE_ONLY:
            return 0, signed
        if self.scope == StockScope.TOTAL_ONLY:
            return signed, 0
        return signed, signed


@dataclass(frozen=True)
class AdjustedProduct:
    product: Product
    snapshot: StockSnapshot
    log: InventoryLog

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "old_stock": self.snapshot.stock_before,
            "new_stock": self.snapshot.stock_after,
            "old_available_stock": self.snapshot.available_before,
            "new_available_stock": self.snapshot.available_after,
            "log_id": self.log.id,
            "log": self.log.to_dict(),
        }


def adjust_stock(product_ref: ProductRef, request: AdjustmentRequest) -> AdjustedProduct:
    """
    Apply one manual adjustment and record it.

    Raises ValidationError / NotFound before mutating, InsufficientStock /
    InsufficientAvailableStock from the ledger, ConflictError on lock
    timeout. Every failure leaves counters and log untouched.
    """
    with unit_of_work("Stock adjustment"):
        begin_write()
        product = resolve_product(product_ref, lock=True, require_active=True)
        delta_total, delta_available = request.deltas(product)
        snapshot = apply_delta(product, delta_total, delta_available)
        log = record_adjustment(
            snapshot=snapshot,
            reason=request.reason,
            scope=request.scope,
            operator_id=request.operator_id,
            note=request.note,
        )
        db.session.commit()

    current_app.logger.info(
        "Adjusted %s (%s %s, scope=%s, reason=%s): stock %s -> %s, available %s -> %s",
        product.barcode,
        request.mode.value,
        request.quantity,
        request.scope.value,
        request.reason.value,
        snapshot.stock_before,
        snapshot.stock_after,
        snapshot.available_before,
        snapshot.available_after,
    )
    return AdjustedProduct(product=product, snapshot=snapshot, log=log)


def adjust(
    product_ref: ProductRef,
    mode,
    quantity,
    reason,
    operator_id,
    *,
    scope=None,
    note: str | None = None,
) -> AdjustedProduct:
    request = AdjustmentRequest.build(
        mode=mode,
        quantity=quantity,
        reason=reason,
        operator_id=operator_id,
        scope=scope,
        note=note,
    )
    return adjust_stock(product_ref, request)


def adjust_by_delta(
    product_ref: ProductRef,
    quantity_change,
    reason,
    operator_id,
    *,
    scope=None,
    note: str | None = None,
) -> AdjustedProduct:
    request = AdjustmentRequest.from_delta(
        quantity_change=quantity_change,
        reason=reason,
        operator_id=operator_id,
        scope=scope,
        note=note,
    )
    return adjust_stock(product_ref, request)


def receive_initial_stock(product: Product, quantity: int, operator_id: str | None) -> InventoryLog | None:
    """
    Book a new product's opening stock through the ledger.

    Runs inside the caller's unit of work (no commit). Zero quantity writes
    nothing.
    """
    if quantity <= 0:
        return None
    snapshot = apply_delta(product, quantity, quantity)
    return record_adjustment(
        snapshot=snapshot,
        reason=AdjustmentReason.RESTOCK,
        scope=StockScope.BOTH,
        operator_id=operator_id,
        note="Opening stock",
    )
