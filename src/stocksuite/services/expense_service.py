from __future__ import annotations

import logging
from collections import defaultdict
from typing import Optional

from stocksuite.config import AppContext
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import Expense, ExpenseCategory, PaymentMethod
from stocksuite.time_utils import DateLike, day_bounds, optional_iso, to_iso

log = logging.getLogger("stocksuite.expenses")


class ExpenseService:
    def __init__(self, repo, context: AppContext | None = None):
        self.repo = repo
        self.context = context or AppContext()

    def record_expense(
        self,
        category: ExpenseCategory | str,
        description: str,
        amount: float,
        expense_date: DateLike = None,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Expense description is required.")
        if float(amount) <= 0:
            raise ValidationError("Expense amount must be > 0.")
        try:
            category = ExpenseCategory(category)
            payment_method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        expense_id = self.repo.add_expense(
            category, description, float(amount), to_iso(expense_date), payment_method, reference, notes, self.context.user_id
        )
        log.info("expense_recorded expense_id=%s category=%s amount=%.2f", expense_id, category.value, float(amount))
        return expense_id

    def list_expenses(self, start: DateLike = None, end: DateLike = None) -> list[Expense]:
        return self.repo.list_expenses(optional_iso(start), optional_iso(end))

    def expenses_by_category(self, category: ExpenseCategory | str) -> list[Expense]:
        return self.repo.list_expenses(category=ExpenseCategory(category))

    def update_expense(self, expense_id: int, **fields) -> None:
        if "amount" in fields and float(fields["amount"]) <= 0:
            raise ValidationError("Expense amount must be > 0.")
        if "category" in fields:
            fields["category"] = ExpenseCategory(fields["category"]).value
        if "payment_method" in fields:
            fields["payment_method"] = PaymentMethod(fields["payment_method"]).value
        if "expense_date" in fields:
            fields["expense_date"] = to_iso(fields["expense_date"])
        if not self.repo.update_expense(int(expense_id), fields):
            raise NotFoundError("Expense not found.")

    def delete_expense(self, expense_id: int) -> None:
        if not self.repo.delete_expense(int(expense_id)):
            raise NotFoundError("Expense not found.")

    def summary(self, start: DateLike = None, end: DateLike = None) -> dict:
        expenses = self.list_expenses(start, end)
        by_category: dict[str, float] = defaultdict(float)
        for e in expenses:
            by_category[e.category.value] += e.amount
        total = sum(e.amount for e in expenses)
        return {
            "total": total,
            "count": len(expenses),
            "by_category": sorted(by_category.items(), key=lambda kv: kv[1], reverse=True),
        }

    def daily_total(self, day: DateLike = None) -> float:
        start, end = day_bounds(day)
        return sum(e.amount for e in self.repo.list_expenses(start, end))

    def daily_cash_expenses(self, day: DateLike = None) -> float:
        start, end = day_bounds(day)
        return sum(e.amount for e in self.repo.list_expenses(start, end) if e.payment_method is PaymentMethod.CASH)
