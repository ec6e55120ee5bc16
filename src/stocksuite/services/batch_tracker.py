from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from stocksuite.domain.models import Batch, CostingMethod, MovementType, Transaction

log = logging.getLogger("stocksuite.valuation")


class BatchCostTracker:
    """
    Per-item queues of cost batches built by folding the ledger in order.

    stock_in appends a batch at the tail. stock_out consumes from the head
    (FIFO) or the tail (LIFO): a batch no larger than the remaining amount is
    removed whole, otherwise it is reduced in place. Quantity left over once
    the queue is empty is dropped; it is only noted in `shortfalls`.
    """

    def __init__(self, method: CostingMethod | str = CostingMethod.FIFO):
        self.method = CostingMethod(method)
        self._queues: dict[int, list[Batch]] = defaultdict(list)
        self.shortfalls: dict[int, int] = {}

    def apply(self, tx: Transaction) -> None:
        if tx.type is MovementType.STOCK_IN:
            self.stock_in(tx.item_id, tx.quantity, tx.unit_price, tx.transaction_date)
        else:
            self.stock_out(tx.item_id, tx.quantity)

    def stock_in(self, item_id: int, quantity: int, unit_price: float, date: str) -> None:
        self._queues[item_id].append(Batch(quantity=int(quantity), unit_price=float(unit_price), date=date))

    def stock_out(self, item_id: int, quantity: int) -> None:
        queue = self._queues[item_id]
        remaining = int(quantity)
        while remaining > 0 and queue:
            idx = 0 if self.method is CostingMethod.FIFO else len(queue) - 1
            batch = queue[idx]
            if batch.quantity <= remaining:
                remaining -= batch.quantity
                queue.pop(idx)
            else:
                batch.quantity -= remaining
                remaining = 0

        if remaining > 0:
            self.shortfalls[item_id] = self.shortfalls.get(item_id, 0) + remaining
            log.warning("stock_out_exceeds_batches item_id=%s dropped=%s method=%s", item_id, remaining, self.method.value)

    def batches(self, item_id: int) -> tuple[Batch, ...]:
        return tuple(Batch(b.quantity, b.unit_price, b.date) for b in self._queues.get(item_id, ()))

    def item_ids(self) -> list[int]:
        return [item_id for item_id, queue in self._queues.items() if queue]

    def current_stock(self, item_id: int) -> int:
        return sum(b.quantity for b in self._queues.get(item_id, ()))

    def total_value(self, item_id: int) -> float:
        return sum(b.value for b in self._queues.get(item_id, ()))


def replay(transactions: Iterable[Transaction], method: CostingMethod | str = CostingMethod.FIFO) -> BatchCostTracker:
    """Fold an ordered ledger into a fresh tracker."""
    tracker = BatchCostTracker(method)
    for tx in transactions:
        tracker.apply(tx)
    return tracker
