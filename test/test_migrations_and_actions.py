import logging
import sqlite3
from pathlib import Path

import pytest

from stocksuite.application.actions import run_action
from stocksuite.config import AppContext, AppPaths
from stocksuite.domain.errors import DataAccessError, ValidationError
from stocksuite.logging_config import CHANNELS, JsonFormatter
from stocksuite.repositories.sqlite_repo import SqliteRepository


def test_migrations_are_idempotent(tmp_path: Path):
    db = tmp_path / "m.db"
    repo = SqliteRepository(db)
    repo.init_db()
    repo.add_category("Kept")
    repo.init_db()

    conn = sqlite3.connect(db)
    versions = [r[0] for r in conn.execute("SELECT version FROM schema_migrations ORDER BY version")]
    tx_cols = {r[1] for r in conn.execute("PRAGMA table_info(transactions)")}
    conn.close()

    assert versions == [1, 2, 3]
    assert {"sale_id", "purchase_id"} <= tx_cols
    assert [c.name for c in repo.list_categories()] == ["Kept"]


def test_malformed_rows_raise_data_access_error(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "bad.db")
    repo.init_db()
    item_id = repo.add_item("Thing", None, 1.0, opening_quantity=1, opening_cost=1.0)
    conn = sqlite3.connect(tmp_path / "bad.db")
    conn.execute("PRAGMA ignore_check_constraints = ON")
    conn.execute("UPDATE transactions SET type='teleport' WHERE item_id=?", (item_id,))
    conn.commit()
    conn.close()

    with pytest.raises(DataAccessError):
        repo.list_transactions()


def test_unreachable_store_raises_data_access_error(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "missing" / "dir" / "x.db")

    with pytest.raises(DataAccessError):
        repo.list_items()


def test_run_action_turns_errors_into_notifications():
    def boom():
        raise ValidationError("Cart is empty.")

    res = run_action("Complete sale", boom)

    assert res.ok is False
    assert res.value is None
    assert res.notification.kind == "error"
    assert "Cart is empty." in res.notification.message


def test_run_action_hides_unexpected_errors(caplog):
    def crash():
        raise KeyError("oops")

    with caplog.at_level(logging.ERROR):
        res = run_action("Export", crash)

    assert res.notification.kind == "error"
    assert "unexpected" in res.notification.message
    assert any(r.exc_info for r in caplog.records)


def test_run_action_success():
    res = run_action("Sum", lambda: 2 + 2, "Done.")

    assert res.ok
    assert res.value == 4
    assert res.notification.kind == "success"


def test_context_from_env(monkeypatch):
    monkeypatch.setenv("STOCKSUITE_USER", "cashier-1")
    monkeypatch.setenv("STOCKSUITE_CURRENCY", "eur")
    monkeypatch.setenv("STOCKSUITE_TAX_RATE", "0.21")

    ctx = AppContext.from_env()

    assert (ctx.user_id, ctx.currency, ctx.tax_rate) == ("cashier-1", "EUR", 0.21)


def test_json_formatter_and_channels():
    record = logging.LogRecord("stocksuite.pos", logging.INFO, __file__, 1, "sale_completed sale_id=%s", (7,), None)

    line = JsonFormatter().format(record)

    assert '"message": "sale_completed sale_id=7"' in line
    assert set(CHANNELS) == {"stocksuite.pos", "stocksuite.valuation", "stocksuite.fx"}


def run_main(monkeypatch, tmp_path: Path, argv: list[str]) -> int:
    from stocksuite import main as entry

    monkeypatch.setattr(entry, "get_app_paths", lambda: AppPaths(tmp_path, tmp_path / "main.db", tmp_path / "logs"))
    monkeypatch.setattr(entry, "setup_logging", lambda *a, **k: None)
    return entry.main(argv)


def test_main_reports_unknown_costing_method(monkeypatch, tmp_path: Path, capsys):
    assert run_main(monkeypatch, tmp_path, ["avco"]) == 1

    out = capsys.readouterr()
    assert "Unknown costing method" in out.err
    assert out.out == ""


def test_main_accepts_lowercase_method(monkeypatch, tmp_path: Path, capsys):
    assert run_main(monkeypatch, tmp_path, ["lifo"]) == 0

    assert "LIFO valuation" in capsys.readouterr().out
