from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from stocksuite.config import AppContext
from stocksuite.domain.models import (
    Batch,
    CostingMethod,
    DailyOperationsReport,
    PaymentMethod,
    SaleStatus,
    SalesReport,
    ValuationResult,
)
from stocksuite.time_utils import DateLike, day_bounds, to_iso

log = logging.getLogger("stocksuite.reports")

DIGITAL_METHODS = (PaymentMethod.DIGITAL, PaymentMethod.BANK_TRANSFER, PaymentMethod.CHEQUE)


def _money(cell):
    cell.number_format = "#,##0.00"


def _bold_row(ws, r):
    for c in ws[r]:
        c.font = Font(bold=True)


def _set_widths(ws, widths: dict[str, int]):
    for col, w in widths.items():
        ws.column_dimensions[col].width = w


def _add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
    ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
    tab = Table(displayName=name, ref=ref)
    tab.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9",
        showRowStripes=True,
        showColumnStripes=False,
    )
    ws.add_table(tab)


class ReportingService:
    def __init__(self, repo, valuation_service, fx_service, expense_service, context: AppContext | None = None):
        self.repo = repo
        self.valuation = valuation_service
        self.fx = fx_service
        self.expenses = expense_service
        self.context = context or AppContext()

    def daily_sales_report(self, day: DateLike = None) -> SalesReport:
        start, end = day_bounds(day)
        sales = self.repo.sales_between(start, end, SaleStatus.COMPLETED)

        total = sum(s.total_amount for s in sales)
        items: dict[str, list] = defaultdict(lambda: [0, 0.0])
        methods: dict[str, list] = defaultdict(lambda: [0, 0.0])
        for s in sales:
            for ln in s.lines:
                items[ln.item_name][0] += ln.quantity
                items[ln.item_name][1] += ln.line_total
            methods[s.payment_method.value][0] += 1
            methods[s.payment_method.value][1] += s.total_amount

        top = sorted(items.items(), key=lambda kv: kv[1][1], reverse=True)[:10]
        return SalesReport(
            day=start[:10],
            total_sales=total,
            total_transactions=len(sales),
            average_transaction=(total / len(sales)) if sales else 0.0,
            top_selling_items=tuple((name, qty, revenue) for name, (qty, revenue) in top),
            payment_methods=tuple((m, count, amount) for m, (count, amount) in sorted(methods.items())),
        )

    def daily_operations_report(self, day: DateLike = None) -> DailyOperationsReport:
        start, end = day_bounds(day)
        sales = self.repo.sales_between(start, end, SaleStatus.COMPLETED)

        cash = card = digital = credit = discounts = 0.0
        for s in sales:
            if s.is_credit_sale:
                credit += s.total_amount
            elif s.payment_method is PaymentMethod.CASH:
                cash += s.total_amount
            elif s.payment_method is PaymentMethod.CARD:
                card += s.total_amount
            elif s.payment_method in DIGITAL_METHODS:
                digital += s.total_amount
            discounts += s.discount_amount
        total_sales = cash + card + digital + credit

        returns_count, total_returns, cash_refunds = self.repo.returns_between(start, end)
        total_expenses = self.expenses.daily_total(start)
        cash_expenses = self.expenses.daily_cash_expenses(start)
        total_purchases = sum(p.total_amount for p in self.repo.list_purchases(start, end))
        vendor_payments = self.repo.vendor_payments_total_between(start, end)
        collections = self.repo.customer_payments_total_between(start, end)
        cost_of_goods = self.repo.cost_of_goods_between(start, end)

        gross = total_sales - cost_of_goods
        report = DailyOperationsReport(
            day=start[:10],
            cash_sales=cash,
            card_sales=card,
            digital_sales=digital,
            credit_sales=credit,
            total_sales=total_sales,
            total_discounts=discounts,
            total_returns=total_returns,
            total_expenses=total_expenses,
            total_purchases=total_purchases,
            vendor_payments=vendor_payments,
            customer_collections=collections,
            cash_on_hand=cash + collections - cash_expenses - vendor_payments - cash_refunds,
            gross_profit=gross,
            net_profit=gross - total_expenses,
            transactions_count=len(sales),
            returns_count=returns_count,
            average_transaction_value=(total_sales / len(sales)) if sales else 0.0,
        )
        log.info("daily_report day=%s sales=%.2f net=%.2f", report.day, total_sales, report.net_profit)
        return report

    def convert_valuation(self, result: ValuationResult, currency: str) -> tuple[float, ValuationResult]:
        """(rate, result re-expressed in `currency`) using the business currency as base."""
        rate = self.fx.get_rate(self.context.currency, currency)
        items = tuple(
            replace(
                v,
                total_value=v.total_value * rate,
                batches=tuple(Batch(b.quantity, b.unit_price * rate, b.date) for b in v.batches),
            )
            for v in result.items
        )
        return rate, replace(result, items=items, total_value=result.total_value * rate)

    def export_valuation_excel(self, path: str, method: CostingMethod | str = CostingMethod.FIFO) -> None:
        result = self.valuation.calculate_valuation(method)
        wb = Workbook()

        ws = wb.active
        ws.title = "Valuation"
        ws["A1"] = f"{self.context.business_name} - Inventory valuation ({result.method.value})"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A2"] = f"Computed at {result.computed_at}"
        ws["A3"] = "Total value"
        ws["B3"] = float(result.total_value)
        _money(ws["B3"])

        ws.append([])
        ws.append(["Item ID", "Item", "Stock", "Avg Unit Cost", "Total Value"])
        _bold_row(ws, 5)
        out_row = 6
        for v in result.items:
            avg = v.total_value / v.current_stock if v.current_stock else 0.0
            ws.append([v.item_id, v.item_name, v.current_stock, float(avg), float(v.total_value)])
            _money(ws[f"D{out_row}"])
            _money(ws[f"E{out_row}"])
            out_row += 1
        ws.freeze_panes = "A6"
        _set_widths(ws, {"A": 10, "B": 34, "C": 10, "D": 16, "E": 18})
        if ws.max_row >= 6:
            _add_table(ws, "ValuationDetail", 5, 1, ws.max_row, 5)

        ws2 = wb.create_sheet("Batches")
        ws2.append(["Item ID", "Item", "Batch Date", "Qty", "Unit Cost", "Value"])
        _bold_row(ws2, 1)
        out_row = 2
        for v in result.items:
            for b in v.batches:
                ws2.append([v.item_id, v.item_name, b.date, b.quantity, float(b.unit_price), float(b.value)])
                _money(ws2[f"E{out_row}"])
                _money(ws2[f"F{out_row}"])
                out_row += 1
        ws2.freeze_panes = "A2"
        _set_widths(ws2, {"A": 10, "B": 34, "C": 22, "D": 8, "E": 14, "F": 16})

        wb.save(path)
        log.info("valuation_exported path=%s method=%s items=%s", path, result.method.value, len(result.items))

    def export_sales_report_excel(self, path: str, start: DateLike, end: DateLike) -> None:
        start_iso, end_iso = to_iso(start), to_iso(end)
        if isinstance(end, date) and not isinstance(end, datetime):
            # a bare end date covers that whole day
            end_iso = day_bounds(end)[1]

        sales = self.repo.sales_between(start_iso, end_iso, SaleStatus.COMPLETED)
        purchases = self.repo.list_purchases(start_iso, end_iso)
        expenses = self.expenses.list_expenses(start_iso, end_iso)

        revenue = sum(s.total_amount for s in sales)
        spent = sum(p.total_amount for p in purchases)
        expense_total = sum(e.amount for e in expenses)

        wb = Workbook()

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A3"] = "Window"
        ws["B3"] = f"{start_iso}  ->  {end_iso}"

        rows = [
            ("Sales count", len(sales), "int"),
            (f"Revenue {self.context.currency}", float(revenue), "money"),
            ("Discounts", float(sum(s.discount_amount for s in sales)), "money"),
            ("Tax", float(sum(s.tax_amount for s in sales)), "money"),
            ("Purchases", float(spent), "money"),
            ("Expenses", float(expense_total), "money"),
        ]
        for i, (label, val, kind) in enumerate(rows):
            r = 5 + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                _money(ws[f"B{r}"])
        _set_widths(ws, {"A": 28, "B": 34})

        # -------- 2) Sales Detail --------
        ws2 = wb.create_sheet("Sales Detail")
        ws2.append(["Sale #", "Datetime", "Payment", "Credit", "Item", "Qty", "Unit Price", "Line Total", "Returned"])
        _bold_row(ws2, 1)
        out_row = 2
        for s in sales:
            for ln in s.lines:
                ws2.append([
                    s.number, s.created_at, s.payment_method.value, "yes" if s.is_credit_sale else "no",
                    ln.item_name, ln.quantity, float(ln.unit_price), float(ln.line_total), ln.returned_quantity,
                ])
                _money(ws2[f"G{out_row}"])
                _money(ws2[f"H{out_row}"])
                out_row += 1
        ws2.freeze_panes = "A2"
        _set_widths(ws2, {"A": 20, "B": 22, "C": 14, "D": 8, "E": 34, "F": 6, "G": 14, "H": 16, "I": 10})
        if ws2.max_row >= 2:
            _add_table(ws2, "SalesDetail", 1, 1, ws2.max_row, 9)

        # -------- 3) Purchases --------
        ws3 = wb.create_sheet("Purchases")
        ws3.append(["Purchase #", "Date", "Vendor", "Bill #", "Item", "Qty", "Rate", "Line Total"])
        _bold_row(ws3, 1)
        out_row = 2
        for p in purchases:
            for ln in p.lines:
                ws3.append([p.number, p.purchase_date, p.vendor_name, p.bill_number or "", ln.item_name, ln.quantity, float(ln.purchase_rate), float(ln.line_total)])
                _money(ws3[f"G{out_row}"])
                _money(ws3[f"H{out_row}"])
                out_row += 1
        ws3.freeze_panes = "A2"
        _set_widths(ws3, {"A": 20, "B": 22, "C": 20, "D": 14, "E": 34, "F": 6, "G": 14, "H": 16})

        # -------- 4) Expenses --------
        ws4 = wb.create_sheet("Expenses")
        ws4.append(["Date", "Category", "Description", "Method", "Amount"])
        _bold_row(ws4, 1)
        for i, e in enumerate(expenses, start=2):
            ws4.append([e.expense_date, e.category.value, e.description, e.payment_method.value, float(e.amount)])
            _money(ws4[f"E{i}"])
        _set_widths(ws4, {"A": 22, "B": 16, "C": 34, "D": 14, "E": 14})

        wb.save(path)
        log.info("sales_report_exported path=%s sales=%s", path, len(sales))
