# Overview: Service-layer sales reporting over committed order lines.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderLine, OrderStatus
from ..money import money_str
from ..time_utils import parse_iso_datetime, to_utc_z
from ..errors import ValidationError
from .stock_ledger_service import ProductRef, resolve_product

# Cancelled and refunded orders do not count as sales
SOLD_STATUSES = (OrderStatus.COMPLETED.value,)


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 datetimes")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def _sold_lines_query(product_id: int, start_dt: datetime | None, end_dt: datetime | None):
    query = (
        db.session.query(OrderLine)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(OrderLine.product_id == product_id, Order.status.in_(SOLD_STATUSES))
    )
    if start_dt:
        query = query.filter(Order.created_at >= start_dt)
    if end_dt:
        query = query.filter(Order.created_at <= end_dt)
    return query


def product_sales_stats(product_ref: ProductRef, *, start: str | None = None, end: str | None = None) -> dict:
    """Units sold, distinct orders and revenue for one product."""
    start_dt, end_dt = _parse_range(start, end)
    product = resolve_product(product_ref)

    row = (
        _sold_lines_query(product.id, start_dt, end_dt)
        .with_entities(
            func.coalesce(func.sum(OrderLine.quantity), 0).label("units_sold"),
            func.count(func.distinct(OrderLine.order_id)).label("order_count"),
            func.coalesce(func.sum(OrderLine.subtotal), 0).label("revenue"),
            func.max(Order.created_at).label("last_sold_at"),
        )
        .one()
    )

    return {
        "product_id": product.id,
        "barcode": product.barcode,
        "product_name": product.name,
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "units_sold": int(row.units_sold or 0),
        "order_count": int(row.order_count or 0),
        "revenue": money_str(row.revenue or 0),
        "last_sold_at": to_utc_z(row.last_sold_at),
    }


def product_sales_records(
    product_ref: ProductRef,
    *,
    start: str | None = None,
    end: str | None = None,
    limit: int = 100,
) -> list[dict]:
    """Newest-first order lines for one product with their order numbers."""
    start_dt, end_dt = _parse_range(start, end)
    product = resolve_product(product_ref)

    rows = (
        _sold_lines_query(product.id, start_dt, end_dt)
        .with_entities(OrderLine, Order.order_number, Order.created_at)
        .order_by(Order.created_at.desc(), OrderLine.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            **line.to_dict(),
            "order_number": order_number,
            "ordered_at": to_utc_z(ordered_at),
        }
        for line, order_number, ordered_at in rows
    ]
