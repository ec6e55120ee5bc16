from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from stocksuite.config import AppContext
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import Purchase
from stocksuite.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from stocksuite.time_utils import DateLike, document_number, optional_iso, to_iso

log = logging.getLogger("stocksuite.purchases")


class PurchaseService:
    def __init__(self, repo, context: AppContext | None = None, uow_factory: Callable[[], UnitOfWork] | None = None):
        self.repo = repo
        self.context = context or AppContext()
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def create_purchase(
        self,
        vendor_id: int,
        items: Iterable[dict],
        paid_amount: float = 0.0,
        bill_number: Optional[str] = None,
        purchase_date: DateLike = None,
        notes: Optional[str] = None,
    ) -> int:
        """
        items: [{item_id, quantity, purchase_rate}]

        Each line becomes a stock_in at purchase_rate. The vendor balance grows
        by the unpaid part (total - paid_amount).
        """
        items = list(items)
        if not items:
            raise ValidationError("Purchase has no items.")

        total = 0.0
        for it in items:
            qty = int(it["quantity"])
            rate = float(it["purchase_rate"])
            if qty <= 0:
                raise ValidationError("Qty must be >= 1.")
            if rate < 0:
                raise ValidationError("Purchase rate must be >= 0.")
            item = self.repo.get_item(int(it["item_id"]))
            if not item or item.is_archived:
                raise NotFoundError("Item not found.")
            total += qty * rate

        if float(paid_amount) < 0:
            raise ValidationError("Paid amount must be >= 0.")
        if float(paid_amount) > total:
            raise ValidationError(f"Paid amount {float(paid_amount):.2f} exceeds purchase total {total:.2f}.")

        number = document_number("PUR")
        with self.uow_factory() as uow:
            purchase_id = uow.create_purchase(
                number,
                int(vendor_id),
                (bill_number or "").strip() or None,
                items,
                float(paid_amount),
                to_iso(purchase_date),
                notes,
                self.context.user_id,
            )
        log.info(
            "purchase_created purchase_id=%s vendor_id=%s lines=%s total=%.2f pending=%.2f",
            purchase_id,
            vendor_id,
            len(items),
            total,
            total - float(paid_amount),
        )
        return purchase_id

    def list_purchases(self, start: DateLike = None, end: DateLike = None) -> list[Purchase]:
        return self.repo.list_purchases(optional_iso(start), optional_iso(end))

    def purchases_by_vendor(self, vendor_id: int) -> list[Purchase]:
        return self.repo.purchases_by_vendor(int(vendor_id))
