# backend/scanstock/routes/inventory.py
"""
Inventory adjustment routes.

Adjustments require an operator identity (body operator_id or
X-Operator-Id header); the value is recorded on the inventory log as-is.

scope defaults to available_only:
- available_only: only available_stock moves
- both:           stock and available_stock move together
- total_only:     only stock moves (available clamped to the new stock)
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_operator
from ..errors import ValidationError
from ..services.adjustment_log_service import list_adjustments
from ..services.inventory_service import adjust_by_delta
from ..services.stock_ledger_service import find_invariant_violations
from ..validation import coerce_non_negative_int, coerce_positive_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _product_ref_from(payload: dict):
    if payload.get("product_id") is not None:
        return coerce_positive_int(payload["product_id"], "product_id")
    if payload.get("barcode") is not None:
        return str(payload["barcode"])
    raise ValidationError("product_id or barcode is required")


@inventory_bp.post("/adjust")
@require_operator
def adjust_inventory_route():
    """
    Signed stock adjustment.

    Body: {product_id | barcode, quantity_change, reason, scope?, note?}
    """
    payload = request.get_json(silent=True) or {}

    result = adjust_by_delta(
        _product_ref_from(payload),
        payload.get("quantity_change"),
        payload.get("reason"),
        g.operator_id,
        scope=payload.get("scope"),
        note=payload.get("note"),
    )

    return {
        "success": True,
        "product_id": result.product.id,
        "new_stock": result.snapshot.stock_after,
        "new_available_stock": result.snapshot.available_after,
        "log_id": result.log.id,
    }, 200


@inventory_bp.get("/adjust")
def adjustment_history_route():
    """
    Newest-first adjustment history.

    Query params: product_id?, reason?, limit? (default 10), offset? (default 0)
    """
    product_id = request.args.get("product_id")
    limit = request.args.get("limit")
    offset = request.args.get("offset")

    logs = list_adjustments(
        product_id=coerce_positive_int(product_id, "product_id") if product_id is not None else None,
        reason=request.args.get("reason") or None,
        limit=min(
            coerce_positive_int(limit, "limit") if limit is not None else 10,
            current_app.config["MAX_PAGE_SIZE"],
        ),
        offset=coerce_non_negative_int(offset, "offset") if offset is not None else 0,
    )
    return {"success": True, "logs": [log.to_dict(include_product=True) for log in logs]}


@inventory_bp.get("/audit")
def invariant_audit_route():
    """Products whose counters break 0 <= available_stock <= stock (expected empty)."""
    violations = find_invariant_violations()
    return {"ok": not violations, "violations": violations}
