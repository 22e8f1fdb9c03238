# Overview: OutboundTracker - scan/dispatch events keyed by barcode; never touches counters.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import OutboundRecord, Product
from ..time_utils import day_bounds, to_utc_z, today
from ..validation import coerce_positive_int
from .concurrency import unit_of_work
from .stock_ledger_service import ProductRef, normalize_barcode, resolve_product


def build_outbound_record(
    barcode: str,
    product: Product | None,
    quantity: int,
    order_id: int | None = None,
) -> OutboundRecord:
    """Add (not commit) one outbound row with a snapshot of the product's counters."""
    record = OutboundRecord(
        barcode=barcode,
        product_id=product.id if product is not None else None,
        order_id=order_id,
        quantity=quantity,
        remaining_stock=product.stock if product is not None else None,
        remaining_available_stock=product.available_stock if product is not None else None,
    )
    db.session.add(record)
    return record


def record_outbound(barcode, product_ref: ProductRef | None = None, quantity=1) -> OutboundRecord:
    """
    Record one scan/dispatch event.

    - product_ref given: it must resolve (NotFound otherwise) and carry the
      same barcode (ValidationError otherwise).
    - product_ref omitted: barcode is matched against the catalog; unknown
      barcodes are recorded with a null product.
    """
    barcode = normalize_barcode(barcode)
    if len(barcode) > 128:
        raise ValidationError("barcode exceeds max length 128")
    quantity = coerce_positive_int(quantity, "quantity")

    with unit_of_work("Outbound record"):
        if product_ref is not None:
            product = resolve_product(product_ref)
            if product.barcode != barcode:
                raise ValidationError(
                    "barcode does not match the referenced product",
                    details={"barcode": barcode, "product_id": product.id, "product_barcode": product.barcode},
                )
        else:
            product = db.session.query(Product).filter(Product.barcode == barcode).first()

        record = build_outbound_record(barcode, product, quantity)
        db.session.commit()

    if product is None:
        current_app.logger.info("Outbound scan for unknown barcode %s (qty %s)", barcode, quantity)
    else:
        current_app.logger.info("Outbound scan for %s (product %s, qty %s)", barcode, product.id, quantity)
    return record


def list_outbound(page: int = 1, per_page: int = 50) -> tuple[list[OutboundRecord], int]:
    """Newest-first page of outbound records plus the total row count."""
    q = db.session.query(OutboundRecord)
    total = q.count()
    items = (
        q.order_by(OutboundRecord.outbound_at.desc(), OutboundRecord.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def history_by_barcode(barcode, limit: int = 100) -> list[OutboundRecord]:
    barcode = normalize_barcode(barcode)
    return (
        db.session.query(OutboundRecord)
        .filter(OutboundRecord.barcode == barcode)
        .order_by(OutboundRecord.outbound_at.desc(), OutboundRecord.id.desc())
        .limit(limit)
        .all()
    )


def outbound_statistics() -> dict:
    quantity = func.coalesce(func.sum(OutboundRecord.quantity), 0)

    total_count, total_quantity = db.session.query(func.count(OutboundRecord.id), quantity).one()

    start, end = day_bounds(today())
    today_count, today_quantity = (
        db.session.query(func.count(OutboundRecord.id), quantity)
        .filter(OutboundRecord.outbound_at >= start, OutboundRecord.outbound_at < end)
        .one()
    )

    distinct_barcodes = db.session.query(func.count(func.distinct(OutboundRecord.barcode))).scalar()
    known = (
        db.session.query(func.count(OutboundRecord.id))
        .filter(OutboundRecord.product_id.isnot(None))
        .scalar()
    )

    return {
        "total_count": int(total_count or 0),
        "total_quantity": int(total_quantity or 0),
        "today_count": int(today_count or 0),
        "today_quantity": int(today_quantity or 0),
        "distinct_barcodes": int(distinct_barcodes or 0),
        "known_product_count": int(known or 0),
        "unknown_product_count": int((total_count or 0) - (known or 0)),
    }


def popular_outbound(limit: int = 10) -> list[dict]:
    """Barcodes ranked by event count, ties broken by the most recent event."""
    event_count = func.count(OutboundRecord.id).label("event_count")
    last_at = func.max(OutboundRecord.outbound_at).label("last_outbound_at")
    total_quantity = func.coalesce(func.sum(OutboundRecord.quantity), 0).label("total_quantity")

    rows = (
        db.session.query(OutboundRecord.barcode, event_count, total_quantity, last_at)
        .group_by(OutboundRecord.barcode)
        .order_by(event_count.desc(), last_at.desc(), OutboundRecord.barcode.asc())
        .limit(limit)
        .all()
    )

    products = {
        p.barcode: p
        for p in db.session.query(Product).filter(Product.barcode.in_([r.barcode for r in rows])).all()
    } if rows else {}

    result = []
    for row in rows:
        product = products.get(row.barcode)
        result.append({
            "barcode": row.barcode,
            "event_count": int(row.event_count),
            "total_quantity": int(row.total_quantity),
            "last_outbound_at": to_utc_z(row.last_outbound_at),
            "product_id": product.id if product else None,
            "product_name": product.name if product else None,
        })
    return result
