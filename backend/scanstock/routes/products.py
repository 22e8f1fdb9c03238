# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/scanstock/routes/products.py
"""
Product catalog routes.

Reads are open. Writes record the caller's opaque operator id when one is
supplied (body operator_id or X-Operator-Id header); the typed stock
endpoint requires it.

Counters are never writable through create/update; use PUT /<id>/stock or
POST /api/inventory/adjust.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import optional_operator, require_operator
from ..errors import ValidationError
from ..models import Product
from ..services import products_service, reporting_service
from ..services.inventory_service import AdjustmentRequest, adjust_stock
from ..validation import (
    PRODUCT_POLICY,
    coerce_bool,
    coerce_non_negative_int,
    enforce_rules_product,
    parse_pagination,
    validate_payload,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List active products with optional keyword search and pagination.

    Query params:
    - keyword: str (optional) - substring of name or barcode
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default DEFAULT_PAGE_SIZE, capped at MAX_PAGE_SIZE)
    - include_inactive: bool (optional)
    """
    page = per_page = None
    if "page" in request.args:
        page, per_page = parse_pagination(
            request.args,
            default_size=current_app.config["DEFAULT_PAGE_SIZE"],
            max_size=current_app.config["MAX_PAGE_SIZE"],
        )

    return products_service.list_products(
        keyword=request.args.get("keyword") or None,
        page=page,
        per_page=per_page,
        include_inactive=coerce_bool(request.args.get("include_inactive", "false"), "include_inactive"),
    )


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    return {"product": products_service.get_product(product_id).to_dict()}


@products_bp.get("/barcode/<path:barcode>")
def get_product_by_barcode(barcode: str):
    """Scanner lookup by barcode."""
    return {"product": products_service.get_product_by_barcode(barcode).to_dict()}


@products_bp.get("/expiring")
def expiring_products():
    days = request.args.get("days")
    days = coerce_non_negative_int(days, "days") if days is not None else None
    products = products_service.expiring_products(days)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/expired")
def expired_products():
    products = products_service.expired_products()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.post("")
@optional_operator
def create_product_route():
    """
    Create a new product.

    Optional "stock" books opening stock through the ledger (restock log).
    """
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    created = products_service.create_product(patch=patch, operator_id=g.operator_id)
    return {"product": created.to_dict()}, 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Update catalog fields (barcode, name, price, expiry_date)."""
    payload = request.get_json(silent=True) or {}
    payload.pop("operator_id", None)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if "stock" in patch:
        raise ValidationError("stock cannot be changed through product update")
    enforce_rules_product(patch)

    updated = products_service.update_product(product_id=product_id, patch=patch)
    return {"product": updated.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Soft-delete a product (history keeps its references)."""
    products_service.delete_product(product_id=product_id)
    return {"ok": True}, 200


@products_bp.put("/<int:product_id>/stock")
@require_operator
def adjust_product_stock(product_id: int):
    """
    Typed stock adjustment.

    Body: {type: add|subtract|set, quantity, reason?, scope?, note?}
    reason defaults to "adjustment", scope to "available_only".
    """
    payload = request.get_json(silent=True) or {}

    adjustment = AdjustmentRequest.build(
        mode=payload.get("type"),
        quantity=payload.get("quantity"),
        reason=payload.get("reason") or "adjustment",
        operator_id=g.operator_id,
        scope=payload.get("scope"),
        note=payload.get("note"),
    )
    result = adjust_stock(product_id, adjustment)
    return {"success": True, **result.to_dict()}, 200


@products_bp.get("/<int:product_id>/sales-stats")
def product_sales_stats(product_id: int):
    return reporting_service.product_sales_stats(
        product_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )


@products_bp.get("/<int:product_id>/sales-records")
def product_sales_records(product_id: int):
    limit = request.args.get("limit")
    limit = coerce_non_negative_int(limit, "limit") if limit is not None else 100
    records = reporting_service.product_sales_records(
        product_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
        limit=min(limit, current_app.config["MAX_PAGE_SIZE"]),
    )
    return {"items": records, "count": len(records)}
