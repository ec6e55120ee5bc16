import pytest

from conftest import stock_item
from stocksuite.domain.errors import DataAccessError
from stocksuite.domain.models import CartLine, CostingMethod, MovementType, PaymentData
from stocksuite.services.valuation_service import UNKNOWN_ITEM, ValuationService


def seed_worked_example(app) -> int:
    item_id = stock_item(app, "Bolt", price=9.0, qty=10, cost=5.0, opening_date="2024-01-01 09:00:00")
    app.ledger.record_transaction(item_id, MovementType.STOCK_IN, 10, 7.0, "2024-01-02 09:00:00")
    app.ledger.record_transaction(item_id, MovementType.STOCK_OUT, 12, 9.0, "2024-01-03 09:00:00")
    return item_id


def test_fifo_and_lifo_values_from_ledger(app):
    item_id = seed_worked_example(app)

    fifo = app.valuation.calculate_valuation(CostingMethod.FIFO)
    lifo = app.valuation.calculate_valuation("LIFO")

    assert fifo.total_value == 56.0
    assert lifo.total_value == 40.0
    assert [(v.item_id, v.item_name, v.current_stock) for v in fifo.items] == [(item_id, "Bolt", 8)]
    assert lifo.items[0].current_stock == 8
    assert fifo.shortfalls == {}


def test_valuation_is_idempotent(app):
    seed_worked_example(app)
    stock_item(app, "Nut", qty=3, cost=1.25)

    first = app.valuation.calculate_valuation()
    second = app.valuation.calculate_valuation()

    assert first.items == second.items
    assert first.total_value == second.total_value == 56.0 + 3.75


def test_items_with_zero_stock_are_excluded(app):
    sold_out = stock_item(app, "Gone", qty=2)
    kept = stock_item(app, "Kept", qty=1, cost=4.0)
    app.checkout.complete_sale(
        [CartLine(sold_out, "Gone", 2, 20.0, 2)],
        PaymentData(amount_tendered=40.0),
    )

    result = app.valuation.calculate_valuation()

    assert [v.item_id for v in result.items] == [kept]
    assert result.total_value == 4.0


def test_total_is_sum_of_item_values(app):
    stock_item(app, "A", qty=4, cost=2.5)
    stock_item(app, "B", qty=2, cost=10.0)

    result = app.valuation.calculate_valuation()

    assert result.total_value == sum(v.total_value for v in result.items) == 30.0


def test_denormalized_counter_is_not_used(app):
    item_id = stock_item(app, "Drift", qty=5, cost=2.0)
    conn = app.repo._conn()
    conn.execute("UPDATE items SET quantity=999 WHERE id=?", (item_id,))
    conn.commit()
    conn.close()

    result = app.valuation.calculate_valuation()

    assert result.items[0].current_stock == 5
    assert result.total_value == 10.0


def test_archived_item_residual_stock_is_reported_as_unknown(app):
    item_id = stock_item(app, "Old", qty=2, cost=3.0)
    app.inventory.archive_item(item_id)

    result = app.valuation.calculate_valuation()

    assert [(v.item_id, v.item_name) for v in result.items] == [(item_id, UNKNOWN_ITEM)]
    assert result.total_value == 6.0


class FlakyLedger:
    def __init__(self, repo):
        self.repo = repo
        self.fail = False

    def list_transactions(self, start_iso=None, end_iso=None):
        if self.fail:
            raise DataAccessError("store unavailable")
        return self.repo.list_transactions(start_iso, end_iso)

    def ledger_stock(self, item_id):
        return self.repo.ledger_stock(item_id)


def test_failed_load_raises_without_partial_result(app):
    stock_item(app, "A", qty=1)
    ledger = FlakyLedger(app.repo)
    ledger.fail = True
    service = ValuationService(app.repo, ledger)

    with pytest.raises(DataAccessError):
        service.calculate_valuation()
    with pytest.raises(DataAccessError):
        service.valuation_with_fallback()


def test_fallback_returns_last_good_snapshot_marked_stale(app):
    stock_item(app, "A", qty=2, cost=3.0)
    ledger = FlakyLedger(app.repo)
    service = ValuationService(app.repo, ledger)

    fresh, stale = service.valuation_with_fallback(CostingMethod.FIFO)
    assert stale is False

    ledger.fail = True
    cached, stale = service.valuation_with_fallback(CostingMethod.FIFO)

    assert stale is True
    assert cached is fresh
    with pytest.raises(DataAccessError):
        service.valuation_with_fallback(CostingMethod.LIFO)


def test_compare_methods_returns_both(app):
    seed_worked_example(app)

    results = app.valuation.compare_methods()

    assert results[CostingMethod.FIFO].total_value == 56.0
    assert results[CostingMethod.LIFO].total_value == 40.0
