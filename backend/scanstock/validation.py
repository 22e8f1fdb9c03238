from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import to_money
from .time_utils import parse_iso_date, parse_iso_datetime


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (counters are never in here)
    - required_on_create: fields required for POST
    - extra_fields: non-column keys the route consumes itself (e.g. initial stock)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"barcode", "name", "price", "expiry_date"},
    required_on_create={"barcode", "name", "price"},
    extra_fields={"stock", "operator_id"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _parse_int(value: Any, field: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading sign)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_signed_int(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    return _parse_int(value, field)


def coerce_positive_int(value: Any, field: str) -> int:
    number = coerce_signed_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    return number


def coerce_non_negative_int(value: Any, field: str) -> int:
    number = coerce_signed_int(value, field)
    if number < 0:
        raise ValidationError(f"{field} must be >= 0")
    return number


def coerce_money(value: Any, field: str):
    try:
        return to_money(value, field)
    except ValueError as exc:
        raise ValidationError(str(exc))


def coerce_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", ""):
        return False
    if isinstance(value, int):
        return value != 0
    raise ValidationError(f"{field} must be a boolean")


def parse_pagination(args, *, default_size: int, max_size: int) -> tuple[int, int]:
    """page/per_page from query args; page is 1-based, per_page capped at max_size."""
    page = coerce_positive_int(args.get("page", 1), "page")
    per_page = coerce_positive_int(args.get("per_page", default_size), "per_page")
    return page, min(per_page, max_size)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _parse_int(value, col.key)

    if isinstance(coltype, Numeric):
        return coerce_money(value, col.key)

    if isinstance(coltype, Boolean):
        return coerce_bool(value, col.key)

    # DateTime is checked before Date; accept ISO-8601 strings, normalize to UTC
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date (YYYY-MM-DD)")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields, plus extra_fields passed through raw)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    extra = policy.extra_fields or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            patch[k] = raw
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules that are not captured by SQLAlchemy metadata alone."""
    if "price" in patch and patch["price"] is not None and patch["price"] < 0:
        raise ValidationError("price must be >= 0")

    if "stock" in patch and patch["stock"] is not None:
        patch["stock"] = coerce_non_negative_int(patch["stock"], "stock")


def enforce_rules_order(total_amount, discount_amount, final_amount) -> None:
    """0 <= discount <= total; a supplied final amount must equal total - discount."""
    if total_amount < 0:
        raise ValidationError("totalAmount must be >= 0")
    if discount_amount < 0:
        raise ValidationError("discountAmount must be >= 0")
    if discount_amount > total_amount:
        raise ValidationError("discountAmount cannot exceed totalAmount")
    if final_amount is not None and final_amount != total_amount - discount_amount:
        raise ValidationError(
            "finalAmount must equal totalAmount - discountAmount",
            details={
                "expected": str(total_amount - discount_amount),
                "received": str(final_amount),
            },
        )
