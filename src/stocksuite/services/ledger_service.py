from __future__ import annotations

import logging
from typing import Optional

from stocksuite.config import AppContext
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import MovementType, Transaction
from stocksuite.repositories.contracts import LedgerStore
from stocksuite.time_utils import DateLike, optional_iso, to_iso

log = logging.getLogger("stocksuite.ledger")


class LedgerService:
    def __init__(self, repo: LedgerStore, context: AppContext | None = None):
        self.repo = repo
        self.context = context or AppContext()

    def list_transactions(self, start: DateLike = None, end: DateLike = None) -> list[Transaction]:
        """Ledger entries ascending by date then id. The window is for reporting only."""
        return self.repo.list_transactions(optional_iso(start), optional_iso(end))

    def full_history(self) -> list[Transaction]:
        return self.repo.list_transactions(None, None)

    def transactions_for_item(self, item_id: int) -> list[Transaction]:
        return self.repo.transactions_for_item(int(item_id))

    def recent(self, limit: int = 5) -> list[Transaction]:
        return self.repo.recent_transactions(int(limit))

    def current_stock(self, item_id: int) -> int:
        return self.repo.ledger_stock(int(item_id))

    def record_transaction(
        self,
        item_id: int,
        type: MovementType | str,
        quantity: int,
        unit_price: float,
        transaction_date: DateLike = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        try:
            movement = MovementType(type)
        except ValueError as exc:
            raise ValidationError(f"Unknown transaction type: {type!r}") from exc
        if int(quantity) <= 0:
            raise ValidationError("Quantity must be > 0.")
        if float(unit_price) < 0:
            raise ValidationError("Unit price must be >= 0.")
        item = self.repo.get_item(int(item_id))
        if not item or item.is_archived:
            raise NotFoundError("Item not found.")

        tx_id = self.repo.append_transaction(
            int(item_id),
            movement,
            int(quantity),
            float(unit_price),
            to_iso(transaction_date),
            created_by=self.context.user_id,
            reference=reference,
            notes=notes,
        )
        log.info("transaction_recorded tx_id=%s item_id=%s type=%s qty=%s", tx_id, item_id, movement.value, quantity)
        return tx_id
