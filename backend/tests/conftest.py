"""
Pytest fixtures for scanstock backend tests.

Provides an in-memory database, per-test table wipe, product factory and test client.
"""

from datetime import date
from decimal import Decimal

import pytest
from scanstock import create_app
from scanstock.extensions import db
from scanstock.models import Product


OPERATOR = "op-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """
    Insert a product row directly (test setup only; bypasses the ledger).

    Usage: make_product(barcode="111", stock=10, available_stock=10)
    """
    counter = {"n": 0}

    def _make(
        barcode: str | None = None,
        *,
        name: str | None = None,
        price: str = "9.99",
        stock: int = 0,
        available_stock: int | None = None,
        expiry_date: date | None = None,
        is_active: bool = True,
    ) -> Product:
        counter["n"] += 1
        product = Product(
            barcode=barcode or f"690000000{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            price=Decimal(price),
            stock=stock,
            available_stock=stock if available_stock is None else available_stock,
            expiry_date=expiry_date,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def operator_headers():
    """X-Operator-Id headers for routes that record an operator."""
    return {'X-Operator-Id': OPERATOR}
