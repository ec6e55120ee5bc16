from __future__ import annotations

import logging
from typing import Callable, Optional

from stocksuite.config import AppContext
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import PaymentMethod, Vendor, VendorPayment
from stocksuite.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from stocksuite.time_utils import DateLike, to_iso

log = logging.getLogger("stocksuite.vendors")

BALANCE_TOLERANCE = 1.0


class VendorService:
    def __init__(self, repo, context: AppContext | None = None, uow_factory: Callable[[], UnitOfWork] | None = None):
        self.repo = repo
        self.context = context or AppContext()
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def add_vendor(
        self,
        name: str,
        company: str = "",
        phone: str = "",
        email: Optional[str] = None,
        address: Optional[str] = None,
    ) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Vendor name is required.")
        return self.repo.add_vendor(
            name, (company or "").strip(), (phone or "").strip(), (email or "").strip() or None, (address or "").strip() or None
        )

    def get_vendor(self, vendor_id: int) -> Vendor:
        v = self.repo.get_vendor(int(vendor_id))
        if not v:
            raise NotFoundError("Vendor not found.")
        return v

    def update_vendor(self, vendor_id: int, **fields) -> None:
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Vendor name is required.")
        if not self.repo.update_vendor(int(vendor_id), fields):
            raise NotFoundError("Vendor not found.")

    def deactivate_vendor(self, vendor_id: int) -> None:
        if not self.repo.deactivate_vendor(int(vendor_id)):
            raise NotFoundError("Vendor not found.")

    def list_vendors(self) -> list[Vendor]:
        return self.repo.list_vendors(include_inactive=False)

    def search_vendors(self, term: str) -> list[Vendor]:
        term = (term or "").strip().lower()
        return [
            v
            for v in self.list_vendors()
            if term in v.name.lower() or term in v.company.lower() or term in v.phone.lower()
        ]

    def vendors_with_balance(self) -> list[Vendor]:
        return sorted(
            (v for v in self.list_vendors() if v.outstanding_balance > 0),
            key=lambda v: v.outstanding_balance,
            reverse=True,
        )

    def reconstructed_balance(self, vendor_id: int) -> float:
        """Pending amounts of all purchases minus recorded payments."""
        purchases = self.repo.purchases_by_vendor(int(vendor_id))
        payments = self.repo.vendor_payments(int(vendor_id))
        return sum(p.pending_amount for p in purchases) - sum(p.amount for p in payments)

    def delete_vendor(self, vendor_id: int) -> None:
        vendor = self.get_vendor(vendor_id)
        # stored balance may drift; the purchase/payment history decides
        if abs(vendor.outstanding_balance) > BALANCE_TOLERANCE:
            real = self.reconstructed_balance(vendor.id)
            if abs(real) > BALANCE_TOLERANCE:
                raise ValidationError(
                    f"Cannot delete vendor with outstanding balance ({real:.2f}). Please clear the balance first."
                )
        if not self.repo.delete_vendor(vendor.id):
            raise NotFoundError("Vendor not found.")
        log.info("vendor_deleted vendor_id=%s", vendor.id)

    def record_payment(
        self,
        vendor_id: int,
        amount: float,
        method: PaymentMethod | str = PaymentMethod.CASH,
        payment_date: DateLike = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        if float(amount) <= 0:
            raise ValidationError("Payment amount must be > 0.")
        self.get_vendor(vendor_id)
        with self.uow_factory() as uow:
            payment_id = uow.record_vendor_payment(
                int(vendor_id), float(amount), PaymentMethod(method), to_iso(payment_date), reference, notes, self.context.user_id
            )
        log.info("vendor_payment payment_id=%s vendor_id=%s amount=%.2f", payment_id, vendor_id, float(amount))
        return payment_id

    def ledger(self, vendor_id: int) -> list[VendorPayment]:
        self.get_vendor(vendor_id)
        return self.repo.vendor_payments(int(vendor_id))
