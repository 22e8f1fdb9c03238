# Overview: AdjustmentRecorder - append-only inventory log writes and reads.

from __future__ import annotations

from ..errors import ValidationError
from ..extensions import db
from ..models import InventoryLog, AdjustmentReason, StockScope
from .stock_ledger_service import StockSnapshot
"""
Inventory Log Invariants (authoritative)

- Append-only: rows are inserted, never updated or deleted.
- Exactly one row per committed counter mutation.
- Rows are written inside the same DB transaction as the mutation they record,
  so both commit or both roll back.
- stock_before/stock_after and available_before/available_after are copied
  from the StockSnapshot the ledger returned, never re-read.
"""


def anchored_change(snapshot: StockSnapshot, scope: StockScope) -> int:
    """Applied change of the counter the scope is anchored on."""
    if scope == StockScope.AVAILABLE_ONLY:
        return snapshot.available_delta
    return snapshot.stock_delta


def record_adjustment(
    *,
    snapshot: StockSnapshot,
    reason: AdjustmentReason | str,
    scope: StockScope | str,
    operator_id: str | None,
    order_id: int | None = None,
    note: str | None = None,
) -> InventoryLog:
    """
    Append one inventory log row for a ledger mutation.

    - No counter logic here.
    - Flushes so the caller gets log.id without committing.
    """
    try:
        reason = AdjustmentReason(reason)
        scope = StockScope(scope)
    except ValueError as exc:
        raise ValidationError(str(exc))

    entry = InventoryLog(
        product_id=snapshot.product_id,
        operator_id=operator_id,
        quantity_change=anchored_change(snapshot, scope),
        stock_before=snapshot.stock_before,
        stock_after=snapshot.stock_after,
        available_before=snapshot.available_before,
        available_after=snapshot.available_after,
        reason=reason.value,
        scope=scope.value,
        order_id=order_id,
        note=note,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_adjustments(
    *,
    product_id: int | None = None,
    reason: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[InventoryLog]:
    """Newest-first adjustment history, optionally for one product."""
    q = db.session.query(InventoryLog)
    if product_id is not None:
        q = q.filter(InventoryLog.product_id == product_id)
    if reason is not None:
        try:
            q = q.filter(InventoryLog.reason == AdjustmentReason(reason).value)
        except ValueError:
            raise ValidationError(f"Unknown reason '{reason}'")

    return (
        q.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
