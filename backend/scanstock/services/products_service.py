# backend/scanstock/services/products_service.py
"""
Catalog Service

Products are looked up by id or barcode and soft-deleted (is_active=False)
so inventory logs, order lines and outbound records keep their references.

Counter fields (stock, available_stock) are never patched here; opening
stock on create is booked through the stock ledger with a restock log.
"""
from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import or_

from ..errors import ConflictError
from ..extensions import db
from ..models import Product
from ..time_utils import today
from .concurrency import begin_write, unit_of_work
from .inventory_service import receive_initial_stock
from .stock_ledger_service import normalize_barcode, resolve_product

PRODUCT_MUTABLE_FIELDS = {"barcode", "name", "price", "expiry_date"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _paginate(base_query, page: int | None, per_page: int | None) -> dict:
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    page = max(page, 1)
    per_page = max(per_page or current_app.config.get("DEFAULT_PAGE_SIZE", 50), 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_products(
    *,
    keyword: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    include_inactive: bool = False,
) -> dict:
    """
    Catalog listing with optional keyword search (name or barcode substring)
    and optional pagination. Without page, every match is returned.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))

    if keyword:
        pattern = f"%{keyword.strip()}%"
        base_query = base_query.filter(or_(Product.name.ilike(pattern), Product.barcode.ilike(pattern)))

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())
    return _paginate(base_query, page, per_page)


def get_product(product_id: int) -> Product:
    return resolve_product(product_id)


def get_product_by_barcode(barcode) -> Product:
    """Scanner lookup; inactive products are reported as not found."""
    return resolve_product(normalize_barcode(barcode), require_active=True)


def _ensure_barcode_free(barcode: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("Barcode already exists.", details={"barcode": barcode})


def create_product(*, patch: dict, operator_id: str | None = None) -> Product:
    """
    Create a product from a validated patch.

    An optional opening "stock" in the patch is applied through the ledger
    (both counters) and logged as a restock in the same transaction.
    """
    opening_stock = int(patch.get("stock") or 0)

    with unit_of_work("Product creation"):
        begin_write()
        _ensure_barcode_free(patch["barcode"])

        p = Product(stock=0, available_stock=0)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()

        receive_initial_stock(p, opening_stock, operator_id)
        db.session.commit()

    current_app.logger.info("Created product %s (%s) with opening stock %s", p.barcode, p.name, opening_stock)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """Patch catalog fields; counters are not writable here."""
    with unit_of_work("Product update"):
        p = resolve_product(product_id, require_active=True)

        if "barcode" in patch and patch["barcode"] != p.barcode:
            _ensure_barcode_free(patch["barcode"], exclude_id=p.id)

        apply_product_patch(p, patch)
        db.session.commit()

    current_app.logger.info("Updated product %s: %s", p.id, ", ".join(sorted(patch.keys())))
    return p


def delete_product(*, product_id: int) -> Product:
    """Soft-delete; repeated calls are no-ops."""
    with unit_of_work("Product deletion"):
        p = resolve_product(product_id)
        if p.is_active:
            p.is_active = False
            db.session.commit()
            current_app.logger.info("Deactivated product %s (%s)", p.id, p.barcode)
    return p


def expiring_products(days: int | None = None) -> list[Product]:
    """Active products whose expiry date falls within the next `days` days (inclusive)."""
    if days is None:
        days = current_app.config.get("EXPIRY_WINDOW_DAYS", 7)
    start = today()
    end = start + timedelta(days=days)
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.expiry_date.isnot(None),
            Product.expiry_date >= start,
            Product.expiry_date <= end,
        )
        .order_by(Product.expiry_date.asc(), Product.id.asc())
        .all()
    )


def expired_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.expiry_date.isnot(None),
            Product.expiry_date < today(),
        )
        .order_by(Product.expiry_date.asc(), Product.id.asc())
        .all()
    )

