from pathlib import Path

from openpyxl import Workbook
import pytest

from conftest import stock_item
from stocksuite.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from stocksuite.domain.models import MovementType


def test_categories_lifecycle(app):
    tools = app.inventory.add_category("Tools", "Hand tools")
    with pytest.raises(ValidationError):
        app.inventory.add_category("tools")

    item_id = app.inventory.add_item("Hammer", tools, 12.0)
    with pytest.raises(ValidationError):
        app.inventory.delete_category(tools)

    app.inventory.update_item(item_id, category_id=None)
    app.inventory.update_category(tools, "Hand Tools")
    app.inventory.delete_category(tools)
    assert app.inventory.list_categories() == []


def test_opening_stock_is_a_ledger_entry(app):
    item_id = stock_item(app, qty=6, cost=2.5, sku="W-1", barcode="7790001")

    [entry] = app.ledger.transactions_for_item(item_id)
    assert (entry.type, entry.quantity, entry.unit_price) == (MovementType.STOCK_IN, 6, 2.5)
    assert app.inventory.get_item_by_barcode("7790001").id == item_id
    assert [i.id for i in app.inventory.search_items("w-1")] == [item_id]


def test_item_validation(app):
    with pytest.raises(ValidationError):
        app.inventory.add_item("", None, 1.0)
    with pytest.raises(ValidationError):
        app.inventory.add_item("X", None, -1.0)
    stock_item(app, sku="DUP")
    with pytest.raises(ValidationError):
        stock_item(app, "Other", sku="DUP")
    with pytest.raises(NotFoundError):
        app.inventory.add_item("X", 42, 1.0)


def test_manual_stock_out_cannot_exceed_ledger_stock(app):
    item_id = stock_item(app, qty=2)

    with pytest.raises(InsufficientStockError):
        app.ledger.record_transaction(item_id, "stock_out", 3, 1.0)
    with pytest.raises(ValidationError):
        app.ledger.record_transaction(item_id, "stock_in", 0, 1.0)
    with pytest.raises(ValidationError):
        app.ledger.record_transaction(item_id, "adjust", 1, 1.0)

    app.ledger.record_transaction(item_id, "stock_out", 2, 1.0, notes="shrinkage")
    assert app.ledger.current_stock(item_id) == 0
    assert app.ledger.recent(1)[0].notes == "shrinkage"


def test_backdated_stock_out_before_any_stock_is_rejected(app):
    item_id = stock_item(app, qty=10, opening_date="2024-01-05")

    with pytest.raises(InsufficientStockError):
        app.ledger.record_transaction(item_id, "stock_out", 10, 1.0, "2024-01-03")

    assert app.ledger.current_stock(item_id) == 10
    result = app.valuation.calculate_valuation()
    assert result.items[0].current_stock == 10
    assert result.shortfalls == {}


def test_backdated_stock_out_cannot_starve_a_later_one(app):
    item_id = stock_item(app, qty=10, opening_date="2024-01-01")
    app.ledger.record_transaction(item_id, "stock_out", 8, 1.0, "2024-01-05")

    with pytest.raises(InsufficientStockError):
        app.ledger.record_transaction(item_id, "stock_out", 5, 1.0, "2024-01-03")

    app.ledger.record_transaction(item_id, "stock_out", 2, 1.0, "2024-01-03")
    app.ledger.record_transaction(item_id, "stock_in", 4, 1.0, "2024-01-07")
    with pytest.raises(InsufficientStockError):
        app.ledger.record_transaction(item_id, "stock_out", 1, 1.0, "2024-01-06")
    app.ledger.record_transaction(item_id, "stock_out", 4, 1.0, "2024-01-07")

    assert app.ledger.current_stock(item_id) == 0
    assert app.valuation.calculate_valuation().shortfalls == {}


def test_archived_items_reject_new_movements(app):
    item_id = stock_item(app)
    app.inventory.archive_item(item_id)

    assert app.inventory.list_items() == []
    assert len(app.inventory.list_items(include_archived=True)) == 1
    with pytest.raises(NotFoundError):
        app.ledger.record_transaction(item_id, "stock_in", 1, 1.0)


def test_ledger_window_is_ordered_ascending(app):
    item_id = stock_item(app, qty=1, opening_date="2024-01-05")
    app.ledger.record_transaction(item_id, "stock_in", 2, 1.0, "2024-01-01")
    app.ledger.record_transaction(item_id, "stock_in", 3, 1.0, "2024-01-09")

    assert [t.quantity for t in app.ledger.full_history()] == [2, 1, 3]
    assert [t.quantity for t in app.ledger.list_transactions("2024-01-02", "2024-01-09")] == [1]
    assert app.ledger.full_history()[0].item_name == "Widget"


def test_low_stock_uses_ledger_and_thresholds(app):
    low = stock_item(app, "Low", qty=3)
    stock_item(app, "Plenty", qty=50)
    custom = stock_item(app, "Custom", qty=20, low_stock_threshold=25)

    flagged = [(item.id, qty) for item, qty in app.inventory.low_stock_items()]

    assert flagged == [(low, 3), (custom, 20)]


def write_workbook(path: Path, rows: list[list]) -> str:
    wb = Workbook()
    ws = wb.active
    ws.append(["name", "category", "sku", "unit_price", "quantity", "unit_cost"])
    for r in rows:
        ws.append(r)
    wb.save(path)
    return str(path)


def test_excel_import_creates_and_restocks_items(app, tmp_path: Path):
    existing = stock_item(app, "Old Name", qty=4, cost=3.0, sku="E-1")
    path = write_workbook(
        tmp_path / "items.xlsx",
        [
            ["Widget", "Hardware", "W-1", 9.5, 5, 2.0],
            ["Renamed", "Hardware", "E-1", 11.0, 3, 4.0],
            [None, "Hardware", "N-1", 1.0, 1, 1.0],
            ["Broken", None, "B-1", 1.0, "lots", 1.0],
        ],
    )

    ok, skipped = app.excel.import_items_excel(path)

    assert (ok, skipped) == (2, 2)
    assert [c.name for c in app.inventory.list_categories()] == ["Hardware"]

    widget = app.repo.get_item_by_sku("W-1")
    assert widget.unit_price == 9.5
    assert app.ledger.current_stock(widget.id) == 5

    updated = app.inventory.get_item(existing)
    assert updated.name == "Renamed"
    assert app.ledger.current_stock(existing) == 7
    assert app.valuation.calculate_valuation().total_value == 5 * 2.0 + 4 * 3.0 + 3 * 4.0


def test_excel_import_requires_name_column(app, tmp_path: Path):
    wb = Workbook()
    wb.active.append(["sku", "quantity"])
    path = tmp_path / "bad.xlsx"
    wb.save(path)

    with pytest.raises(ValidationError):
        app.excel.import_items_excel(str(path))
