from datetime import date

from openpyxl import load_workbook
import pytest

from conftest import stock_item
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import CartLine, ExpenseCategory, PaymentData, PaymentMethod


def test_expense_summary_groups_by_category(app):
    app.expenses.record_expense(ExpenseCategory.RENT, "March rent", 100.0, "2024-03-01")
    app.expenses.record_expense("utilities", "Power", 30.0, "2024-03-02", payment_method=PaymentMethod.CARD)
    app.expenses.record_expense("rent", "Storage", 50.0, "2024-03-03")

    summary = app.expenses.summary()

    assert summary["total"] == 180.0
    assert summary["count"] == 3
    assert summary["by_category"] == [("rent", 150.0), ("utilities", 30.0)]
    assert app.expenses.daily_total(date(2024, 3, 2)) == 30.0
    assert app.expenses.daily_cash_expenses(date(2024, 3, 2)) == 0.0
    assert [e.description for e in app.expenses.list_expenses("2024-03-02", "2024-03-04")] == ["Storage", "Power"]
    assert len(app.expenses.expenses_by_category("rent")) == 2


def test_expense_update_and_delete(app):
    expense_id = app.expenses.record_expense("supplies", "Paper", 12.0)

    app.expenses.update_expense(expense_id, amount=15.0, category="miscellaneous")
    [e] = app.expenses.list_expenses()
    assert (e.amount, e.category) == (15.0, ExpenseCategory.MISCELLANEOUS)

    app.expenses.delete_expense(expense_id)
    assert app.expenses.list_expenses() == []
    with pytest.raises(NotFoundError):
        app.expenses.delete_expense(expense_id)


def test_expense_validation(app):
    with pytest.raises(ValidationError):
        app.expenses.record_expense("rent", "Rent", 0)
    with pytest.raises(ValidationError):
        app.expenses.record_expense("party", "Cake", 10.0)


def seed_day(app):
    item_id = stock_item(app, qty=10, cost=5.0)
    customer_id = app.customers.add_customer("Ana", "555")
    vendor_id = app.vendors.add_vendor("Acme")

    app.purchases.create_purchase(vendor_id, [{"item_id": item_id, "quantity": 3, "purchase_rate": 5.0}])
    cash_sale = app.checkout.complete_sale([CartLine(item_id, "Widget", 2, 20.0, 13)], PaymentData(amount_tendered=50.0))
    app.checkout.complete_sale([CartLine(item_id, "Widget", 1, 20.0, 13)], PaymentData(PaymentMethod.CARD))
    app.checkout.complete_sale(
        [CartLine(item_id, "Widget", 1, 20.0, 13)], PaymentData(), customer_id=customer_id, is_credit_sale=True
    )
    app.expenses.record_expense("supplies", "Bags", 10.0)
    app.customers.record_payment(customer_id, 5.0)
    app.vendors.record_payment(vendor_id, 6.0)
    app.checkout.process_return(cash_sale.id, [{"item_id": item_id, "quantity": 1}], "damaged")
    return item_id


def test_daily_operations_report(app):
    seed_day(app)

    report = app.reporting.daily_operations_report()

    assert report.day == date.today().isoformat()
    assert (report.cash_sales, report.card_sales, report.digital_sales, report.credit_sales) == (40.0, 20.0, 0.0, 20.0)
    assert report.total_sales == 80.0
    assert report.transactions_count == 3
    assert (report.returns_count, report.total_returns) == (1, 20.0)
    assert report.total_expenses == 10.0
    assert report.total_purchases == 15.0
    assert report.vendor_payments == 6.0
    assert report.customer_collections == 5.0
    assert report.cash_on_hand == 40.0 + 5.0 - 10.0 - 6.0 - 20.0
    assert report.gross_profit == 80.0 - 4 * 5.0
    assert report.net_profit == report.gross_profit - 10.0
    assert report.average_transaction_value == pytest.approx(80.0 / 3)


def test_store_credit_returns_leave_cash_on_hand_alone(app):
    item_id = stock_item(app, qty=10, cost=5.0)
    customer_id = app.customers.add_customer("Ana", "555")
    app.checkout.complete_sale([CartLine(item_id, "Widget", 1, 20.0, 10)], PaymentData(amount_tendered=20.0))
    credit_sale = app.checkout.complete_sale(
        [CartLine(item_id, "Widget", 2, 20.0, 9)], PaymentData(), customer_id=customer_id, is_credit_sale=True
    )

    app.checkout.process_return(credit_sale.id, [{"item_id": item_id, "quantity": 1}], "wrong size", "store_credit")
    report = app.reporting.daily_operations_report()

    assert (report.returns_count, report.total_returns) == (1, 20.0)
    assert report.cash_on_hand == 20.0
    assert app.customers.get_customer(customer_id).outstanding_balance == 20.0


def test_daily_sales_report(app):
    seed_day(app)

    report = app.reporting.daily_sales_report(date.today())

    assert report.total_sales == 80.0
    assert report.total_transactions == 3
    assert report.top_selling_items == (("Widget", 4, 80.0),)
    assert report.payment_methods == (("card", 1, 20.0), ("cash", 2, 60.0))


def test_voided_sales_are_left_out_of_reports(app):
    item_id = stock_item(app, qty=5)
    sale = app.checkout.complete_sale([CartLine(item_id, "Widget", 1, 20.0, 5)], PaymentData(amount_tendered=20.0))
    app.checkout.void_sale(sale.id, "test")

    assert app.reporting.daily_sales_report().total_transactions == 0
    assert app.reporting.daily_operations_report().total_sales == 0.0


def test_export_valuation_and_sales_workbooks(app, tmp_path):
    seed_day(app)
    valuation_path = tmp_path / "valuation.xlsx"
    sales_path = tmp_path / "sales.xlsx"

    app.reporting.export_valuation_excel(str(valuation_path), "LIFO")
    app.reporting.export_sales_report_excel(str(sales_path), date.today(), date.today())

    wb = load_workbook(valuation_path)
    assert wb.sheetnames == ["Valuation", "Batches"]
    ws = wb["Valuation"]
    assert ws["B3"].value == app.valuation.calculate_valuation("LIFO").total_value
    assert ws.cell(row=6, column=2).value == "Widget"

    wb = load_workbook(sales_path)
    assert wb.sheetnames == ["Summary", "Sales Detail", "Purchases", "Expenses"]
    assert wb["Summary"]["B5"].value == 3
    assert wb["Sales Detail"].max_row == 4
    assert wb["Expenses"]["C2"].value == "Bags"


class FixedFx:
    def get_rate(self, base, quote, day=None):
        assert (base, quote) == ("USD", "EUR")
        return 0.5


def test_convert_valuation_scales_totals(app):
    stock_item(app, qty=4, cost=10.0)
    app.reporting.fx = FixedFx()

    rate, converted = app.reporting.convert_valuation(app.valuation.calculate_valuation(), "EUR")

    assert rate == 0.5
    assert converted.total_value == 20.0
    assert converted.items[0].total_value == 20.0
    assert converted.items[0].batches[0].unit_price == 5.0
