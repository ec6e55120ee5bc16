from __future__ import annotations

from collections import Counter
import logging
from typing import Callable, Iterable, Optional, Union

from stocksuite.config import AppContext
from stocksuite.domain.errors import AppError, InsufficientStockError, NotFoundError, ValidationError
from stocksuite.domain.models import (
    BillType,
    CartLine,
    Item,
    PaymentData,
    PaymentMethod,
    Sale,
    SaleLine,
    SaleStatus,
)
from stocksuite.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from stocksuite.time_utils import document_number, now_iso

log = logging.getLogger("stocksuite.pos")

REFUND_METHODS = ("cash", "store_credit")


class Cart:
    """Session-scoped cart. Stock checks here are advisory; checkout re-checks against the ledger."""

    def __init__(self):
        self._lines: dict[int, CartLine] = {}

    def add(self, item: Item, quantity: int = 1, available_stock: Optional[int] = None) -> CartLine:
        quantity = int(quantity)
        if quantity <= 0:
            raise ValidationError("Qty must be >= 1.")
        stock = int(item.quantity if available_stock is None else available_stock)

        line = self._lines.get(item.id)
        wanted = quantity + (line.quantity if line else 0)
        if wanted > stock:
            raise InsufficientStockError(f"Not enough stock for {item.name}. Available: {stock}")

        if line:
            line.quantity = wanted
            line.available_stock = stock
        else:
            line = CartLine(item_id=item.id, name=item.name, quantity=quantity, unit_price=item.unit_price, available_stock=stock)
            self._lines[item.id] = line
        return line

    def update_quantity(self, item_id: int, quantity: int) -> None:
        line = self._lines.get(int(item_id))
        if line is None:
            raise NotFoundError("Item not in cart.")
        if quantity <= 0:
            self.remove(item_id)
            return
        if quantity > line.available_stock:
            raise InsufficientStockError(f"Not enough stock for {line.name}. Available: {line.available_stock}")
        line.quantity = int(quantity)

    def remove(self, item_id: int) -> None:
        self._lines.pop(int(item_id), None)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def subtotal(self) -> float:
        return sum(ln.line_total for ln in self._lines.values())

    @property
    def total_items(self) -> int:
        return sum(ln.quantity for ln in self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)


class CheckoutService:
    def __init__(
        self,
        repo,
        context: AppContext | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.context = context or AppContext()
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def add_to_cart(self, cart: Cart, item_id: int, quantity: int = 1) -> CartLine:
        item = self.repo.get_item(int(item_id))
        if not item or item.is_archived:
            raise NotFoundError("Item not found.")
        return cart.add(item, quantity, self.repo.available_stock(item.id, now_iso()))

    def _validate_customer(self, customer_id: Optional[int], is_credit_sale: bool) -> None:
        if is_credit_sale and customer_id is None:
            raise ValidationError("Credit sales require a customer.")
        if customer_id is None:
            return
        customer = self.repo.get_customer(int(customer_id))
        if not customer:
            raise NotFoundError("Customer not found.")
        if not customer.is_active:
            raise ValidationError(f"Customer {customer.name} is inactive.")

    def _validate_stock(self, lines: list[CartLine]) -> None:
        qty_by_item: Counter[int] = Counter()
        for ln in lines:
            qty_by_item[ln.item_id] += ln.quantity
        for item_id, qty in qty_by_item.items():
            item = self.repo.get_item(item_id)
            if not item or item.is_archived:
                raise NotFoundError(f"Item not found: {item_id}")
            available = self.repo.available_stock(item_id, now_iso())
            if qty > available:
                raise InsufficientStockError(f"Not enough stock for {item.name}. Available: {available}")

    def complete_sale(
        self,
        cart_lines: Union[Cart, Iterable[CartLine]],
        payment: PaymentData,
        bill_type: BillType | str = BillType.REGULAR,
        customer_id: Optional[int] = None,
        is_credit_sale: bool = False,
        notes: Optional[str] = None,
    ) -> Sale:
        """
        Quotations are priced and returned without touching the store.
        Regular bills write sale, lines, stock_out entries, item counters and
        (for credit) the customer charge in one unit of work.
        """
        bill_type = BillType(bill_type)
        lines = cart_lines.lines if isinstance(cart_lines, Cart) else list(cart_lines)
        if not lines:
            raise ValidationError("Cart is empty.")
        for ln in lines:
            if int(ln.quantity) <= 0:
                raise ValidationError("Qty must be >= 1.")
            if float(ln.unit_price) < 0:
                raise ValidationError("Unit price must be >= 0.")
        if payment.price_discount < 0 or payment.profit_discount < 0:
            raise ValidationError("Discounts must be >= 0.")

        self._validate_customer(customer_id, is_credit_sale)

        subtotal = sum(ln.line_total for ln in lines)
        discount = float(payment.price_discount) + float(payment.profit_discount)
        taxable = max(0.0, subtotal - discount)
        tax = round(taxable * float(self.context.tax_rate), 2)
        total = round(taxable + tax, 2)

        if is_credit_sale:
            tendered, change = float(payment.amount_tendered), 0.0
        elif payment.method is PaymentMethod.CASH:
            tendered = float(payment.amount_tendered)
            if tendered < total:
                raise ValidationError(f"Amount tendered {tendered:.2f} is less than total {total:.2f}.")
            change = round(tendered - total, 2)
        else:
            tendered = max(float(payment.amount_tendered), total)
            change = round(tendered - total, 2)

        created_at = now_iso()
        sale_lines = tuple(
            SaleLine(item_id=ln.item_id, item_name=ln.name, quantity=int(ln.quantity), unit_price=float(ln.unit_price), line_total=ln.line_total)
            for ln in lines
        )

        if bill_type is BillType.QUOTATION:
            quote = Sale(
                id=None,
                number=document_number("QUO"),
                bill_type=bill_type,
                status=SaleStatus.COMPLETED,
                subtotal=subtotal,
                discount_amount=discount,
                tax_amount=tax,
                total_amount=total,
                payment_method=payment.method,
                amount_tendered=tendered,
                change_amount=change,
                customer_id=customer_id,
                is_credit_sale=bool(is_credit_sale),
                created_at=created_at,
                created_by=self.context.user_id,
                lines=sale_lines,
                notes=notes or "QUOTATION - No inventory affected",
            )
            log.info("quotation_created number=%s lines=%s total=%.2f", quote.number, len(sale_lines), total)
            return quote

        self._validate_stock(lines)

        header = {
            "number": document_number("POS"),
            "subtotal": subtotal,
            "discount_amount": discount,
            "tax_amount": tax,
            "total_amount": total,
            "payment_method": payment.method.value,
            "amount_tendered": tendered,
            "change_amount": change,
            "customer_id": customer_id,
            "is_credit_sale": bool(is_credit_sale),
            "created_at": created_at,
            "created_by": self.context.user_id,
            "notes": notes,
        }
        items = [{"item_id": ln.item_id, "quantity": int(ln.quantity), "unit_price": float(ln.unit_price)} for ln in lines]

        try:
            with self.uow_factory() as uow:
                sale_id = uow.create_sale(header, items)
        except AppError as e:
            log.warning("sale_failed number=%s error=%s", header["number"], e)
            raise

        log.info(
            "sale_completed sale_id=%s number=%s lines=%s total=%.2f credit=%s customer_id=%s",
            sale_id,
            header["number"],
            len(items),
            total,
            bool(is_credit_sale),
            customer_id,
        )
        return Sale(
            id=sale_id,
            number=header["number"],
            bill_type=bill_type,
            status=SaleStatus.COMPLETED,
            subtotal=subtotal,
            discount_amount=discount,
            tax_amount=tax,
            total_amount=total,
            payment_method=payment.method,
            amount_tendered=tendered,
            change_amount=change,
            customer_id=customer_id,
            is_credit_sale=bool(is_credit_sale),
            created_at=created_at,
            created_by=self.context.user_id,
            lines=sale_lines,
            notes=notes,
        )

    def void_sale(self, sale_id: int, reason: str) -> None:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to void a sale.")
        with self.uow_factory() as uow:
            uow.void_sale(int(sale_id), reason, self.context.user_id, now_iso())
        log.info("sale_voided sale_id=%s reason=%s", sale_id, reason)

    def process_return(
        self,
        sale_id: int,
        lines: Iterable[dict],
        reason: str,
        refund_method: str = "cash",
    ) -> tuple[int, float]:
        """
        lines: [{item_id, quantity}]
        Returns (return_id, total_refund); refunds are at the sold unit price.
        """
        lines = [{"item_id": int(ln["item_id"]), "quantity": int(ln["quantity"])} for ln in lines]
        if not lines:
            raise ValidationError("Nothing to return.")
        if refund_method not in REFUND_METHODS:
            raise ValidationError(f"Refund method must be one of: {', '.join(REFUND_METHODS)}")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required for returns.")

        number = document_number("RET")
        with self.uow_factory() as uow:
            return_id, refund = uow.record_sale_return(
                int(sale_id), number, lines, reason, refund_method, self.context.user_id, now_iso()
            )
        log.info("sale_returned sale_id=%s return_id=%s refund=%.2f method=%s", sale_id, return_id, refund, refund_method)
        return return_id, refund

    def list_sales(self, limit: Optional[int] = 50) -> list[Sale]:
        return self.repo.list_sales(limit)

    def get_sale(self, sale_id: int) -> Sale:
        sale = self.repo.get_sale(int(sale_id))
        if not sale:
            raise NotFoundError("Sale not found.")
        return sale
