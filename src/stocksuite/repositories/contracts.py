from __future__ import annotations

from typing import Optional, Protocol

from stocksuite.domain.models import Customer, Item, MovementType, Transaction


class ItemStore(Protocol):
    def list_items(self, include_archived: bool = False) -> list[Item]: ...
    def get_item(self, item_id: int) -> Optional[Item]: ...


class TransactionStore(Protocol):
    def list_transactions(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None) -> list[Transaction]: ...
    def ledger_stock(self, item_id: int) -> int: ...


class LedgerStore(ItemStore, TransactionStore, Protocol):
    def transactions_for_item(self, item_id: int) -> list[Transaction]: ...
    def recent_transactions(self, limit: int = 5) -> list[Transaction]: ...
    def append_transaction(
        self,
        item_id: int,
        movement: MovementType,
        quantity: int,
        unit_price: float,
        datetime_iso: str,
        created_by: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int: ...


class CustomerStore(Protocol):
    def get_customer(self, customer_id: int) -> Optional[Customer]: ...
    def list_customers(self, include_inactive: bool = False) -> list[Customer]: ...
