# Overview: Error taxonomy shared by services and routes; every rejected operation raises one of these.

from __future__ import annotations

from flask import Flask, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db


class StockError(Exception):
    """
    Base class for every failure the inventory core reports to callers.

    kind is the stable machine-readable code, http_status the transport
    mapping used by the Flask error handlers.
    """
    kind = "error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class ValidationError(StockError, ValueError):
    """400-level input problem, raised before any storage is touched."""
    kind = "validation_error"
    http_status = 400


class NotFound(StockError):
    """Unknown product / order / barcode reference."""
    kind = "not_found"
    http_status = 404


class InsufficientStock(StockError):
    """Mutation would drive the total stock counter below zero."""
    kind = "insufficient_stock"
    http_status = 409


class InsufficientAvailableStock(StockError):
    """Mutation would drive the available stock counter below zero."""
    kind = "insufficient_available_stock"
    http_status = 409


class ConflictError(StockError, ValueError):
    """409-level conflict: lock timeout, stale version or unique-key collision."""
    kind = "conflict"
    http_status = 409


class StorageError(StockError):
    """Underlying datastore failure. The message is intentionally opaque."""
    kind = "storage_error"
    http_status = 500

    def __init__(self, message: str = "Internal storage error", details: dict | None = None):
        super().__init__(message, details)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(StockError)
    def handle_stock_error(exc: StockError):
        if exc.http_status >= 500:
            current_app.logger.error("Request failed with %s: %s", exc.kind, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(404)
    def handle_not_found(_exc):
        return jsonify({"success": False, "error": "Not found", "kind": "not_found", "details": {}}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(_exc):
        return jsonify({
            "success": False,
            "error": "Method not allowed",
            "kind": "validation_error",
            "details": {},
        }), 405

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_failure(_exc: SQLAlchemyError):
        # Read paths run outside unit_of_work.
        db.session.rollback()
        current_app.logger.exception("Unhandled datastore error")
        return jsonify(StorageError().to_dict()), StorageError.http_status
