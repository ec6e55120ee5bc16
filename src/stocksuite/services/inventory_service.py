from __future__ import annotations

import logging
from typing import Optional

from stocksuite.config import AppContext
from stocksuite.domain.errors import NotFoundError, ValidationError
from stocksuite.domain.models import Category, Item
from stocksuite.time_utils import DateLike, to_iso

log = logging.getLogger("stocksuite.inventory")


class InventoryService:
    def __init__(self, repo, context: AppContext | None = None):
        self.repo = repo
        self.context = context or AppContext()

    # ---------- Categories ----------
    def list_categories(self) -> list[Category]:
        return self.repo.list_categories()

    def add_category(self, name: str, description: Optional[str] = None) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required.")
        if self.repo.get_category_by_name(name):
            raise ValidationError(f"Category already exists: {name}")
        return self.repo.add_category(name, (description or "").strip() or None)

    def get_or_create_category(self, name: str) -> int:
        existing = self.repo.get_category_by_name(name.strip())
        if existing:
            return existing.id
        return self.add_category(name)

    def update_category(self, category_id: int, name: str, description: Optional[str] = None) -> None:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required.")
        clash = self.repo.get_category_by_name(name)
        if clash and clash.id != int(category_id):
            raise ValidationError(f"Category already exists: {name}")
        if not self.repo.update_category(int(category_id), name, description):
            raise NotFoundError("Category not found.")

    def delete_category(self, category_id: int) -> None:
        if self.repo.count_items_in_category(int(category_id)) > 0:
            raise ValidationError("Category still has items; move or archive them first.")
        if not self.repo.delete_category(int(category_id)):
            raise NotFoundError("Category not found.")

    # ---------- Items ----------
    def list_items(self, include_archived: bool = False) -> list[Item]:
        return self.repo.list_items(include_archived)

    def get_item(self, item_id: int) -> Item:
        item = self.repo.get_item(int(item_id))
        if not item:
            raise NotFoundError("Item not found.")
        return item

    def get_item_by_barcode(self, barcode: str) -> Item:
        item = self.repo.get_item_by_barcode((barcode or "").strip())
        if not item:
            raise NotFoundError("Item not found.")
        return item

    def search_items(self, term: str) -> list[Item]:
        term = (term or "").strip().lower()
        if not term:
            return self.list_items()
        return [
            it
            for it in self.list_items()
            if term in it.name.lower() or term in (it.sku or "").lower() or term in (it.barcode or "").lower()
        ]

    def add_item(
        self,
        name: str,
        category_id: Optional[int],
        unit_price: float,
        sku: Optional[str] = None,
        barcode: Optional[str] = None,
        low_stock_threshold: Optional[int] = None,
        opening_quantity: int = 0,
        opening_cost: float = 0.0,
        opening_date: DateLike = None,
    ) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Item name is required.")
        if unit_price < 0:
            raise ValidationError("Price must be >= 0.")
        if opening_quantity < 0 or opening_cost < 0:
            raise ValidationError("Opening stock and cost must be >= 0.")
        if low_stock_threshold is not None and low_stock_threshold < 0:
            raise ValidationError("Low stock threshold must be >= 0.")
        if category_id is not None and not self.repo.get_category(int(category_id)):
            raise NotFoundError("Category not found.")
        sku = (sku or "").strip() or None
        barcode = (barcode or "").strip() or None
        if sku and self.repo.get_item_by_sku(sku):
            raise ValidationError(f"SKU already in use: {sku}")

        item_id = self.repo.add_item(
            name,
            category_id,
            float(unit_price),
            sku=sku,
            barcode=barcode,
            low_stock_threshold=low_stock_threshold,
            opening_quantity=int(opening_quantity),
            opening_cost=float(opening_cost),
            datetime_iso=to_iso(opening_date),
            created_by=self.context.user_id,
        )
        log.info("item_created item_id=%s opening_qty=%s", item_id, opening_quantity)
        return item_id

    def update_item(self, item_id: int, **fields) -> None:
        if "unit_price" in fields and float(fields["unit_price"]) < 0:
            raise ValidationError("Price must be >= 0.")
        if fields.get("low_stock_threshold") is not None and int(fields["low_stock_threshold"]) < 0:
            raise ValidationError("Low stock threshold must be >= 0.")
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Item name is required.")
        if not self.repo.update_item(int(item_id), fields):
            raise NotFoundError("Item not found.")

    def archive_item(self, item_id: int) -> None:
        """Items are archived, never deleted; their ledger history stays."""
        if not self.repo.archive_item(int(item_id)):
            raise NotFoundError("Item not found.")
        log.info("item_archived item_id=%s", item_id)

    # ---------- Stock ----------
    def stock_levels(self) -> list[tuple[Item, int]]:
        """(item, ledger-derived stock) for every active item."""
        stock = self.repo.ledger_stock_map()
        return [(it, stock.get(it.id, 0)) for it in self.list_items()]

    def low_stock_items(self) -> list[tuple[Item, int]]:
        out = []
        for item, qty in self.stock_levels():
            threshold = item.low_stock_threshold
            if threshold is None:
                threshold = self.context.low_stock_threshold
            if qty <= threshold:
                out.append((item, qty))
        out.sort(key=lambda pair: (pair[1], pair[0].name))
        return out
