from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from stocksuite.domain.models import PaymentMethod


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def create_sale(self, header: dict, lines: Iterable[dict]) -> int: ...
    def void_sale(self, sale_id: int, reason: str, created_by: Optional[str], datetime_iso: str) -> None: ...
    def record_sale_return(
        self,
        sale_id: int,
        number: str,
        lines: Iterable[dict],
        reason: str,
        refund_method: str,
        created_by: Optional[str],
        datetime_iso: str,
    ) -> tuple[int, float]: ...
    def create_purchase(
        self,
        number: str,
        vendor_id: int,
        bill_number: Optional[str],
        items: Iterable[dict],
        paid_amount: float,
        purchase_date: str,
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int: ...
    def record_customer_payment(
        self,
        customer_id: int,
        amount: float,
        payment_method: PaymentMethod,
        payment_date: str,
        reference: Optional[str],
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int: ...
    def record_vendor_payment(
        self,
        vendor_id: int,
        amount: float,
        payment_method: PaymentMethod,
        payment_date: str,
        reference: Optional[str],
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for transactional write use-cases.

    Each repository method runs inside one SQLite transaction, so every call
    here is all-or-nothing. Services depend on the UnitOfWork protocol only.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def create_sale(self, header: dict, lines: Iterable[dict]) -> int:
        return int(self.repo.create_sale(header, list(lines)))

    def void_sale(self, sale_id: int, reason: str, created_by: Optional[str], datetime_iso: str) -> None:
        self.repo.void_sale(sale_id, reason, created_by, datetime_iso)

    def record_sale_return(self, sale_id, number, lines, reason, refund_method, created_by, datetime_iso) -> tuple[int, float]:
        return_id, refund = self.repo.record_sale_return(
            sale_id, number, list(lines), reason, refund_method, created_by, datetime_iso
        )
        return int(return_id), float(refund)

    def create_purchase(self, number, vendor_id, bill_number, items, paid_amount, purchase_date, notes, created_by) -> int:
        return int(
            self.repo.create_purchase(
                number=number,
                vendor_id=vendor_id,
                bill_number=bill_number,
                items=list(items),
                paid_amount=paid_amount,
                purchase_date=purchase_date,
                notes=notes,
                created_by=created_by,
            )
        )

    def record_customer_payment(self, customer_id, amount, payment_method, payment_date, reference, notes, created_by) -> int:
        return int(
            self.repo.record_customer_payment(customer_id, amount, payment_method, payment_date, reference, notes, created_by)
        )

    def record_vendor_payment(self, vendor_id, amount, payment_method, payment_date, reference, notes, created_by) -> int:
        return int(
            self.repo.record_vendor_payment(vendor_id, amount, payment_method, payment_date, reference, notes, created_by)
        )
