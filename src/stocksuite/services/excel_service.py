from __future__ import annotations

import logging

from openpyxl import load_workbook

from stocksuite.domain.errors import AppError, ValidationError
from stocksuite.domain.models import MovementType

log = logging.getLogger(__name__)

OPTIONAL_COLUMNS = ("category", "sku", "barcode", "unit_price", "quantity", "unit_cost")


class ExcelService:
    def __init__(self, repo, inventory_service, ledger_service):
        self.repo = repo
        self.inventory = inventory_service
        self.ledger = ledger_service

    def import_items_excel(self, path: str) -> tuple[int, int]:
        """
        Headers (first row, any order):
          name | category | sku | barcode | unit_price | quantity | unit_cost

        New items get `quantity` as opening stock at `unit_cost`. Rows whose sku
        matches an existing item update it, and a positive `quantity` is
        recorded as a restock stock_in.
        """
        wb = load_workbook(path)
        ws = wb.active

        headers = {}
        for col in range(1, ws.max_column + 1):
            v = ws.cell(row=1, column=col).value
            if isinstance(v, str):
                headers[v.strip().lower()] = col

        if "name" not in headers:
            raise ValidationError("Missing column header: name")

        def cell(row: int, key: str):
            col = headers.get(key)
            return ws.cell(row=row, column=col).value if col else None

        ok = 0
        skipped = 0

        for row in range(2, ws.max_row + 1):
            try:
                name = cell(row, "name")
                if not name or not str(name).strip():
                    skipped += 1
                    continue
                name = str(name).strip()
                sku = str(cell(row, "sku")).strip() if cell(row, "sku") is not None else None
                barcode = str(cell(row, "barcode")).strip() if cell(row, "barcode") is not None else None
                price = float(cell(row, "unit_price") or 0)
                qty = int(float(cell(row, "quantity") or 0))
                cost = float(cell(row, "unit_cost") or 0)
                if qty < 0 or price < 0 or cost < 0:
                    skipped += 1
                    continue

                category_name = cell(row, "category")
                category_id = (
                    self.inventory.get_or_create_category(str(category_name))
                    if category_name and str(category_name).strip()
                    else None
                )

                existing = self.repo.get_item_by_sku(sku) if sku else None
                if existing:
                    fields = {"name": name, "unit_price": price}
                    if category_id is not None:
                        fields["category_id"] = category_id
                    if barcode:
                        fields["barcode"] = barcode
                    self.inventory.update_item(existing.id, **fields)
                    if qty > 0:
                        self.ledger.record_transaction(
                            existing.id,
                            MovementType.STOCK_IN,
                            qty,
                            cost,
                            reference="EXCEL_IMPORT",
                            notes=f"Excel restock (+{qty})",
                        )
                else:
                    self.inventory.add_item(
                        name,
                        category_id,
                        price,
                        sku=sku,
                        barcode=barcode,
                        opening_quantity=qty,
                        opening_cost=cost,
                    )

                ok += 1
            except (AppError, TypeError, ValueError) as e:
                log.warning("Excel import skipped row %s: %s", row, e)
                skipped += 1

        log.info("excel_import path=%s ok=%s skipped=%s", path, ok, skipped)
        return ok, skipped
