from __future__ import annotations

import logging
from typing import Callable, Optional

from stocksuite.config import AppContext
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import Customer, CustomerPayment, PaymentMethod
from stocksuite.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from stocksuite.time_utils import DateLike, to_iso

log = logging.getLogger("stocksuite.customers")


class CustomerService:
    """Customer accounts. outstanding_balance is only moved by credit sales, payments and store credit."""

    def __init__(self, repo, context: AppContext | None = None, uow_factory: Callable[[], UnitOfWork] | None = None):
        self.repo = repo
        self.context = context or AppContext()
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def add_customer(self, name: str, phone: str, email: Optional[str] = None, address: Optional[str] = None) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Customer name is required.")
        return self.repo.add_customer(name, (phone or "").strip(), (email or "").strip() or None, (address or "").strip() or None)

    def get_customer(self, customer_id: int) -> Customer:
        c = self.repo.get_customer(int(customer_id))
        if not c:
            raise NotFoundError("Customer not found.")
        return c

    def update_customer(self, customer_id: int, **fields) -> None:
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Customer name is required.")
        if not self.repo.update_customer(int(customer_id), fields):
            raise NotFoundError("Customer not found.")

    def deactivate_customer(self, customer_id: int) -> None:
        if not self.repo.deactivate_customer(int(customer_id)):
            raise NotFoundError("Customer not found.")

    def list_customers(self) -> list[Customer]:
        return self.repo.list_customers(include_inactive=False)

    def search_customers(self, term: str) -> list[Customer]:
        term = (term or "").strip().lower()
        return [
            c
            for c in self.list_customers()
            if term in c.name.lower() or term in c.phone.lower() or term in (c.email or "").lower()
        ]

    def customers_with_balance(self) -> list[Customer]:
        return sorted(
            (c for c in self.list_customers() if c.outstanding_balance > 0),
            key=lambda c: c.outstanding_balance,
            reverse=True,
        )

    def record_payment(
        self,
        customer_id: int,
        amount: float,
        method: PaymentMethod | str = PaymentMethod.CASH,
        payment_date: DateLike = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        if float(amount) <= 0:
            raise ValidationError("Payment amount must be > 0.")
        self.get_customer(customer_id)
        with self.uow_factory() as uow:
            payment_id = uow.record_customer_payment(
                int(customer_id), float(amount), PaymentMethod(method), to_iso(payment_date), reference, notes, self.context.user_id
            )
        log.info("customer_payment payment_id=%s customer_id=%s amount=%.2f", payment_id, customer_id, float(amount))
        return payment_id

    def ledger(self, customer_id: int) -> list[CustomerPayment]:
        self.get_customer(customer_id)
        return self.repo.customer_payments(int(customer_id))

    def balance_summary(self, customer_id: int) -> dict:
        c = self.get_customer(customer_id)
        payments = self.repo.customer_payments(int(customer_id))
        return {
            "customer_id": c.id,
            "name": c.name,
            "outstanding_balance": c.outstanding_balance,
            "total_purchases": c.total_purchases,
            "total_paid": sum(p.amount for p in payments),
            "payments_count": len(payments),
            "last_payment_date": payments[0].payment_date if payments else None,
        }
