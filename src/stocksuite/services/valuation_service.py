from __future__ import annotations

import logging
from typing import Optional

from stocksuite.domain.errors import AppError, ValidationError
from stocksuite.domain.models import CostingMethod, ItemValuation, ValuationResult
from stocksuite.repositories.contracts import ItemStore, TransactionStore
from stocksuite.services.batch_tracker import replay
from stocksuite.time_utils import now_iso

log = logging.getLogger("stocksuite.valuation")

UNKNOWN_ITEM = "Unknown Item"


def parse_costing_method(method: CostingMethod | str) -> CostingMethod:
    if isinstance(method, CostingMethod):
        return method
    try:
        return CostingMethod(str(method).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown costing method: {method!r}") from exc


class ValuationService:
    """
    Inventory valuation by replaying the complete ledger through a batch tracker.

    The denormalized Item.quantity counter is never consulted: stock and value
    both come from the ledger. A computation either completes from a full
    ledger or raises; there are no partial results.
    """

    def __init__(self, items: ItemStore, ledger: TransactionStore):
        self.items = items
        self.ledger = ledger
        self._last_good: dict[CostingMethod, ValuationResult] = {}

    def calculate_valuation(self, method: CostingMethod | str = CostingMethod.FIFO) -> ValuationResult:
        method = parse_costing_method(method)
        registry = {it.id: it.name for it in self.items.list_items(include_archived=False)}
        history = self.ledger.list_transactions(None, None)

        tracker = replay(history, method)

        valuations = []
        for item_id in sorted(tracker.item_ids()):
            stock = tracker.current_stock(item_id)
            if stock <= 0:
                continue
            valuations.append(
                ItemValuation(
                    item_id=item_id,
                    item_name=registry.get(item_id, UNKNOWN_ITEM),
                    current_stock=stock,
                    total_value=tracker.total_value(item_id),
                    method=method,
                    batches=tracker.batches(item_id),
                )
            )

        result = ValuationResult(
            items=tuple(valuations),
            total_value=sum(v.total_value for v in valuations),
            method=method,
            shortfalls=dict(tracker.shortfalls),
            computed_at=now_iso(),
        )
        self._last_good[method] = result
        log.info(
            "valuation_computed method=%s items=%s total=%.2f transactions=%s",
            method.value,
            len(valuations),
            result.total_value,
            len(history),
        )
        return result

    def valuation_with_fallback(self, method: CostingMethod | str = CostingMethod.FIFO) -> tuple[ValuationResult, bool]:
        """(result, stale): stale means the fresh run failed and the last good snapshot was returned."""
        method = parse_costing_method(method)
        try:
            return self.calculate_valuation(method), False
        except AppError as e:
            cached: Optional[ValuationResult] = self._last_good.get(method)
            if cached is None:
                raise
            log.warning("valuation_stale method=%s computed_at=%s error=%s", method.value, cached.computed_at, e)
            return cached, True

    def compare_methods(self) -> dict[CostingMethod, ValuationResult]:
        return {m: self.calculate_valuation(m) for m in (CostingMethod.FIFO, CostingMethod.LIFO)}
