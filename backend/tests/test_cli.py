"""
CLI command tests (click runner against the test app).
"""

from scanstock.models import InventoryLog, Product


def test_products_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["products", "create", "--barcode", "111", "--name", "Milk", "--price", "2.5", "--stock", "3"])
    assert result.exit_code == 0, result.output
    assert "PASS Created product 111" in result.output

    result = runner.invoke(args=["products", "list"])
    assert "Milk" in result.output
    assert db_session.query(InventoryLog).count() == 1


def test_inventory_adjust_and_audit(app, db_session, make_product):
    product = make_product("111", stock=5, available_stock=5)
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "inventory", "adjust", "111", "--mode", "subtract", "--quantity", "2", "--scope", "both", "--reason", "damage",
    ])
    assert result.exit_code == 0, result.output
    assert "stock 5 -> 3" in result.output

    result = runner.invoke(args=["inventory", "adjust", str(product.id), "--by-id", "--mode", "subtract", "--quantity", "9"])
    assert result.exit_code != 0
    assert "insufficient_available_stock" in result.output

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock == 3

    result = runner.invoke(args=["inventory", "audit"])
    assert result.exit_code == 0
    assert "PASS" in result.output


def test_outbound_stats(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["outbound", "stats"])

    assert result.exit_code == 0
    assert "total_count" in result.output
