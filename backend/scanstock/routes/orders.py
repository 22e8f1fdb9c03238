# Overview: Flask API routes for order fulfillment and order lifecycle.

# backend/scanstock/routes/orders.py
"""
Order routes.

POST /api/orders commits a cart atomically: every line decrements stock or
nothing does. Supplying idempotencyKey makes resubmission safe; the first
committed order is returned again.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import optional_operator
from ..services import order_service
from ..validation import coerce_bool, parse_pagination

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@optional_operator
def fulfill_order_route():
    """
    Body:
    {
      items: [{barcode, name, price, quantity}],
      totalAmount, discountAmount?, finalAmount?,
      idempotencyKey?, recordOutbound?
    }
    """
    payload = request.get_json(silent=True) or {}

    order = order_service.fulfill_order(
        payload.get("items"),
        payload.get("totalAmount"),
        payload.get("discountAmount", 0),
        payload.get("finalAmount"),
        operator_id=g.operator_id,
        idempotency_key=payload.get("idempotencyKey"),
        record_outbound=coerce_bool(payload.get("recordOutbound", False), "recordOutbound"),
    )

    data = order.to_dict(include_lines=True)
    return {
        "success": True,
        "order_id": order.id,
        "order_number": order.order_number,
        "items": data["items"],
        "created_at": data["created_at"],
        "order": data,
    }, 201


@orders_bp.get("")
def list_orders_route():
    page, per_page = parse_pagination(
        request.args,
        default_size=current_app.config["DEFAULT_PAGE_SIZE"],
        max_size=current_app.config["MAX_PAGE_SIZE"],
    )
    orders, total = order_service.list_orders(page, per_page, status=request.args.get("status") or None)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    return {
        "items": [o.to_dict() for o in orders],
        "count": len(orders),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    return {"order": order_service.get_order(order_id).to_dict(include_lines=True)}


@orders_bp.put("/<int:order_id>/status")
def update_order_status_route(order_id: int):
    """Body: {status}. Status changes never move stock."""
    payload = request.get_json(silent=True) or {}
    order = order_service.update_order_status(order_id, payload.get("status"))
    return {"success": True, "order": order.to_dict()}


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    """Only cancelled orders can be deleted; lines go with them."""
    order_service.delete_order(order_id)
    return {"ok": True}, 200
