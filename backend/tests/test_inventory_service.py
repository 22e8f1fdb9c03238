"""
Manual adjustment tests.

Verifies:
- add / subtract / set deltas for every scope
- exactly one inventory log row per adjustment, matching the snapshot
- rejected adjustments leave counters and log untouched
"""

import pytest

from scanstock.errors import InsufficientAvailableStock, InsufficientStock, NotFound, ValidationError
from scanstock.models import InventoryLog, Product
from scanstock.services.adjustment_log_service import list_adjustments
from scanstock.services.inventory_service import (
    AdjustMode,
    AdjustmentRequest,
    adjust,
    adjust_by_delta,
)

OPERATOR = "op-1"


def _counters(db_session, product_id):
    db_session.expire_all()
    p = db_session.get(Product, product_id)
    return p.stock, p.available_stock


def _log_count(db_session):
    return db_session.query(InventoryLog).count()


class TestScenarios:

    def test_restock_both_counters(self, db_session, make_product):
        """10/10, add 5 restock scope=both -> 15/15, one log +5."""
        product = make_product(stock=10, available_stock=10)

        result = adjust(product.id, "add", 5, "restock", OPERATOR, scope="both")

        assert _counters(db_session, product.id) == (15, 15)
        logs = db_session.query(InventoryLog).all()
        assert len(logs) == 1
        assert logs[0].quantity_change == 5
        assert logs[0].reason == "restock"
        assert logs[0].scope == "both"
        assert logs[0].operator_id == OPERATOR
        assert result.log.id == logs[0].id

    def test_subtract_available_only(self, db_session, make_product):
        """10/2, subtract 2 sale scope=available_only -> 10/0."""
        product = make_product(stock=10, available_stock=2)

        result = adjust(product.id, "subtract", 2, "sale", OPERATOR, scope="available_only")

        assert _counters(db_session, product.id) == (10, 0)
        assert result.log.quantity_change == -2
        assert result.log.stock_before == result.log.stock_after == 10

    def test_default_scope_is_available_only(self, db_session, make_product):
        product = make_product(stock=10, available_stock=5)

        result = adjust(product.id, "add", 3, "return", OPERATOR)

        assert _counters(db_session, product.id) == (10, 8)
        assert result.log.scope == "available_only"


class TestSetMode:

    def test_set_both_reconciles_available(self, db_session, make_product):
        product = make_product(stock=10, available_stock=10)

        result = adjust(product.id, "set", 5, "adjustment", OPERATOR, scope="both")

        assert _counters(db_session, product.id) == (5, 5)
        assert result.log.quantity_change == -5

    def test_set_both_keeps_lower_available(self, db_session, make_product):
        product = make_product(stock=10, available_stock=3)

        adjust(product.id, "set", 20, "adjustment", OPERATOR, scope="both")

        assert _counters(db_session, product.id) == (20, 3)

    def test_set_available_only(self, db_session, make_product):
        product = make_product(stock=10, available_stock=3)

        adjust(product.id, "set", 7, "adjustment", OPERATOR, scope="available_only")

        assert _counters(db_session, product.id) == (10, 7)

    def test_set_available_above_stock_is_clamped(self, db_session, make_product):
        product = make_product(stock=10, available_stock=3)

        result = adjust(product.id, "set", 15, "adjustment", OPERATOR, scope="available_only")

        assert _counters(db_session, product.id) == (10, 10)
        assert result.log.quantity_change == 7

    def test_set_total_only_clamps_available(self, db_session, make_product):
        product = make_product(stock=10, available_stock=8)

        result = adjust(product.id, "set", 6, "damage", OPERATOR, scope="total_only")

        assert _counters(db_session, product.id) == (6, 6)
        assert result.log.quantity_change == -4
        assert (result.log.available_before, result.log.available_after) == (8, 6)


class TestLogMatchesSnapshot:

    def test_log_row_copies_snapshot(self, db_session, make_product):
        product = make_product(stock=8, available_stock=6)

        result = adjust(product.id, "subtract", 2, "damage", OPERATOR, scope="both", note="Broken jar")

        log = db_session.get(InventoryLog, result.log.id)
        assert (log.stock_before, log.stock_after) == (8, 6)
        assert (log.available_before, log.available_after) == (6, 4)
        assert log.note == "Broken jar"
        assert result.to_dict()["new_stock"] == 6
        assert result.to_dict()["old_available_stock"] == 6

    def test_history_is_newest_first(self, db_session, make_product):
        product = make_product(stock=10, available_stock=10)
        adjust(product.id, "subtract", 1, "sale", OPERATOR)
        adjust(product.id, "add", 1, "return", OPERATOR)

        logs = list_adjustments(product_id=product.id)

        assert [log.reason for log in logs] == ["return", "sale"]

    def test_history_filters_by_reason(self, db_session, make_product):
        product = make_product(stock=10, available_stock=10)
        adjust(product.id, "subtract", 1, "sale", OPERATOR)
        adjust(product.id, "subtract", 1, "damage", OPERATOR, scope="both")

        logs = list_adjustments(reason="damage")

        assert len(logs) == 1
        assert logs[0].reason == "damage"


class TestRejections:

    def test_insufficient_stock_leaves_no_trace(self, db_session, make_product):
        product = make_product(stock=2, available_stock=2)

        with pytest.raises(InsufficientStock):
            adjust(product.id, "subtract", 3, "damage", OPERATOR, scope="both")

        assert _counters(db_session, product.id) == (2, 2)
        assert _log_count(db_session) == 0

    def test_insufficient_available(self, db_session, make_product):
        product = make_product(stock=5, available_stock=1)

        with pytest.raises(InsufficientAvailableStock):
            adjust(product.id, "subtract", 2, "sale", OPERATOR)

        assert _counters(db_session, product.id) == (5, 1)
        assert _log_count(db_session) == 0

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound):
            adjust(12345, "add", 1, "restock", OPERATOR)

    def test_inactive_product(self, db_session, make_product):
        product = make_product(stock=1, is_active=False)

        with pytest.raises(NotFound):
            adjust(product.id, "add", 1, "restock", OPERATOR)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"mode": "multiply", "quantity": 1, "reason": "restock", "operator_id": OPERATOR},
            {"mode": "add", "quantity": 0, "reason": "restock", "operator_id": OPERATOR},
            {"mode": "add", "quantity": -1, "reason": "restock", "operator_id": OPERATOR},
            {"mode": "add", "quantity": 1.5, "reason": "restock", "operator_id": OPERATOR},
            {"mode": "add", "quantity": True, "reason": "restock", "operator_id": OPERATOR},
            {"mode": "add", "quantity": 1, "reason": "theft", "operator_id": OPERATOR},
            {"mode": "add", "quantity": 1, "reason": "restock", "operator_id": ""},
            {"mode": "add", "quantity": 1, "reason": "restock", "operator_id": OPERATOR, "scope": "some"},
        ],
    )
    def test_invalid_request(self, kwargs):
        with pytest.raises(ValidationError):
            AdjustmentRequest.build(**kwargs)


class TestAdjustByDelta:

    def test_positive_change_adds(self, db_session, make_product):
        product = make_product(stock=4, available_stock=4)

        result = adjust_by_delta(product.id, 6, "restock", OPERATOR, scope="both")

        assert _counters(db_session, product.id) == (10, 10)
        assert result.log.quantity_change == 6

    def test_negative_change_subtracts_by_barcode(self, db_session, make_product):
        make_product("5449000000996", stock=4, available_stock=4)

        result = adjust_by_delta("5449000000996", "-3", "sale", OPERATOR)

        assert (result.product.stock, result.product.available_stock) == (4, 1)

    def test_zero_rejected(self, db_session, make_product):
        product = make_product(stock=4)

        with pytest.raises(ValidationError):
            adjust_by_delta(product.id, 0, "adjustment", OPERATOR)

    def test_request_mode_mapping(self):
        request = AdjustmentRequest.from_delta(quantity_change=-7, reason="sale", operator_id=OPERATOR)

        assert request.mode == AdjustMode.SUBTRACT
        assert request.quantity == 7
