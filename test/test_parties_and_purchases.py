import pytest

from conftest import stock_item
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import PaymentMethod


def test_customer_payment_lowers_balance_and_is_logged(app):
    customer_id = app.customers.add_customer("Ana", "555", email="ana@example.com")
    conn = app.repo._conn()
    conn.execute("UPDATE customers SET outstanding_balance=100 WHERE id=?", (customer_id,))
    conn.commit()
    conn.close()

    app.customers.record_payment(customer_id, 30.0, PaymentMethod.CARD, reference="R-1")
    app.customers.record_payment(customer_id, 80.0)

    summary = app.customers.balance_summary(customer_id)
    assert summary["outstanding_balance"] == -10.0
    assert summary["total_paid"] == 110.0
    assert summary["payments_count"] == 2
    assert [p.amount for p in app.customers.ledger(customer_id)] == [80.0, 30.0]


def test_customer_payment_validation(app):
    customer_id = app.customers.add_customer("Ana", "555")

    with pytest.raises(ValidationError):
        app.customers.record_payment(customer_id, 0)
    with pytest.raises(NotFoundError):
        app.customers.record_payment(999, 10.0)
    with pytest.raises(ValidationError):
        app.customers.add_customer("  ", "1")


def test_customer_search_and_deactivate(app):
    a = app.customers.add_customer("Ana Perez", "555-1")
    app.customers.add_customer("Ben", "777", email="ben@shop.test")

    assert [c.id for c in app.customers.search_customers("perez")] == [a]
    assert [c.name for c in app.customers.search_customers("shop.test")] == ["Ben"]

    app.customers.deactivate_customer(a)
    assert [c.name for c in app.customers.list_customers()] == ["Ben"]


def test_purchase_adds_stock_and_pending_vendor_balance(app):
    item_id = stock_item(app, qty=0)
    vendor_id = app.vendors.add_vendor("Acme", "Acme Ltd", "123")

    purchase_id = app.purchases.create_purchase(
        vendor_id,
        [{"item_id": item_id, "quantity": 10, "purchase_rate": 4.0}],
        paid_amount=15.0,
        bill_number="B-77",
    )

    vendor = app.vendors.get_vendor(vendor_id)
    assert vendor.outstanding_balance == 25.0
    assert vendor.total_purchases == 40.0
    assert app.ledger.current_stock(item_id) == 10
    assert app.repo.get_item(item_id).quantity == 10

    [purchase] = app.purchases.purchases_by_vendor(vendor_id)
    assert purchase.id == purchase_id
    assert purchase.pending_amount == 25.0
    assert purchase.bill_number == "B-77"
    assert [(ln.item_id, ln.quantity, ln.line_total) for ln in purchase.lines] == [(item_id, 10, 40.0)]

    valuation = app.valuation.calculate_valuation()
    assert valuation.total_value == 40.0


def test_purchase_validation(app):
    item_id = stock_item(app)
    vendor_id = app.vendors.add_vendor("Acme")

    with pytest.raises(ValidationError):
        app.purchases.create_purchase(vendor_id, [])
    with pytest.raises(ValidationError):
        app.purchases.create_purchase(vendor_id, [{"item_id": item_id, "quantity": 0, "purchase_rate": 1.0}])
    with pytest.raises(ValidationError):
        app.purchases.create_purchase(vendor_id, [{"item_id": item_id, "quantity": 1, "purchase_rate": 1.0}], paid_amount=5.0)
    with pytest.raises(NotFoundError):
        app.purchases.create_purchase(999, [{"item_id": item_id, "quantity": 1, "purchase_rate": 1.0}])
    assert app.ledger.current_stock(item_id) == 10


def test_vendor_with_balance_cannot_be_deleted(app):
    item_id = stock_item(app, qty=0)
    vendor_id = app.vendors.add_vendor("Acme")
    app.purchases.create_purchase(vendor_id, [{"item_id": item_id, "quantity": 5, "purchase_rate": 20.0}])

    with pytest.raises(ValidationError):
        app.vendors.delete_vendor(vendor_id)

    app.vendors.record_payment(vendor_id, 99.5, PaymentMethod.BANK_TRANSFER)
    assert app.vendors.reconstructed_balance(vendor_id) == 0.5

    app.vendors.delete_vendor(vendor_id)
    assert app.vendors.list_vendors() == []
    assert len(app.purchases.list_purchases()) == 1


def test_vendor_without_history_is_removed(app):
    vendor_id = app.vendors.add_vendor("Temp")

    app.vendors.delete_vendor(vendor_id)

    with pytest.raises(NotFoundError):
        app.vendors.get_vendor(vendor_id)


def test_vendor_ledger_and_balance_list(app):
    item_id = stock_item(app, qty=0)
    a = app.vendors.add_vendor("A")
    b = app.vendors.add_vendor("B")
    app.purchases.create_purchase(a, [{"item_id": item_id, "quantity": 1, "purchase_rate": 10.0}])
    app.purchases.create_purchase(b, [{"item_id": item_id, "quantity": 1, "purchase_rate": 50.0}])
    app.vendors.record_payment(a, 4.0)

    assert [v.name for v in app.vendors.vendors_with_balance()] == ["B", "A"]
    assert [p.amount for p in app.vendors.ledger(a)] == [4.0]
    assert app.vendors.get_vendor(a).outstanding_balance == 6.0
