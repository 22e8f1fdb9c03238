# Overview: Flask API routes for outbound/scan events; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..services import outbound_service
from ..validation import coerce_positive_int, parse_pagination

outbound_bp = Blueprint("outbound", __name__, url_prefix="/api/outbound")


@outbound_bp.post("")
def record_outbound_route():
    """
    Record a scan/dispatch event. Never changes stock.

    Body: {barcode, productId?, quantity?}
    Unknown barcodes are accepted and stored without a product.
    """
    payload = request.get_json(silent=True) or {}

    product_id = payload.get("productId")
    record = outbound_service.record_outbound(
        payload.get("barcode"),
        product_ref=coerce_positive_int(product_id, "productId") if product_id is not None else None,
        quantity=payload.get("quantity", 1),
    )
    return {"success": True, "record": record.to_dict()}, 201


@outbound_bp.get("")
def list_outbound_route():
    page, per_page = parse_pagination(
        request.args,
        default_size=current_app.config["DEFAULT_PAGE_SIZE"],
        max_size=current_app.config["MAX_PAGE_SIZE"],
    )
    records, total = outbound_service.list_outbound(page, per_page)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    return {
        "items": [r.to_dict() for r in records],
        "count": len(records),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


@outbound_bp.get("/barcode/<path:barcode>")
def outbound_history_route(barcode: str):
    records = outbound_service.history_by_barcode(barcode, limit=current_app.config["MAX_PAGE_SIZE"])
    return {"barcode": barcode, "items": [r.to_dict() for r in records], "count": len(records)}


@outbound_bp.get("/stats")
def outbound_stats_route():
    return outbound_service.outbound_statistics()


@outbound_bp.get("/popular")
def popular_outbound_route():
    limit = request.args.get("limit")
    limit = coerce_positive_int(limit, "limit") if limit is not None else current_app.config["OUTBOUND_POPULAR_LIMIT"]
    items = outbound_service.popular_outbound(min(limit, current_app.config["MAX_PAGE_SIZE"]))
    return {"items": items, "count": len(items)}
