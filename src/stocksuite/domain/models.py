from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MovementType(str, Enum):
    STOCK_IN = "stock_in"
    STOCK_OUT = "stock_out"


class CostingMethod(str, Enum):
    FIFO = "FIFO"
    LIFO = "LIFO"


class BillType(str, Enum):
    REGULAR = "regular"
    QUOTATION = "quotation"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    DIGITAL = "digital"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    VOIDED = "voided"
    RETURNED = "returned"


class ExpenseCategory(str, Enum):
    RENT = "rent"
    UTILITIES = "utilities"
    SALARIES = "salaries"
    SUPPLIES = "supplies"
    MAINTENANCE = "maintenance"
    TRANSPORT = "transport"
    MARKETING = "marketing"
    TAXES = "taxes"
    MISCELLANEOUS = "miscellaneous"


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Item:
    id: int
    name: str
    category_id: Optional[int]
    unit_price: float
    quantity: int
    is_archived: int = 0
    sku: Optional[str] = None
    barcode: Optional[str] = None
    low_stock_threshold: Optional[int] = None


@dataclass(frozen=True)
class Transaction:
    id: int
    item_id: int
    type: MovementType
    quantity: int
    unit_price: float
    transaction_date: str
    created_by: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    item_name: Optional[str] = None

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type is MovementType.STOCK_IN else -self.quantity

    @property
    def total_value(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class Batch:
    quantity: int
    unit_price: float
    date: str

    @property
    def value(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class ItemValuation:
    item_id: int
    item_name: str
    current_stock: int
    total_value: float
    method: CostingMethod
    batches: tuple[Batch, ...]


@dataclass(frozen=True)
class ValuationResult:
    items: tuple[ItemValuation, ...]
    total_value: float
    method: CostingMethod
    shortfalls: dict[int, int] = field(default_factory=dict)
    computed_at: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    phone: str
    outstanding_balance: float = 0.0
    total_purchases: float = 0.0
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: int = 1


@dataclass(frozen=True)
class CustomerPayment:
    id: int
    customer_id: int
    amount: float
    payment_method: PaymentMethod
    payment_date: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


@dataclass(frozen=True)
class Vendor:
    id: int
    name: str
    company: str
    phone: str
    outstanding_balance: float = 0.0
    total_purchases: float = 0.0
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: int = 1


@dataclass(frozen=True)
class VendorPayment:
    id: int
    vendor_id: int
    amount: float
    payment_method: PaymentMethod
    payment_date: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


@dataclass
class CartLine:
    item_id: int
    name: str
    quantity: int
    unit_price: float
    available_stock: int

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PaymentData:
    method: PaymentMethod = PaymentMethod.CASH
    amount_tendered: float = 0.0
    price_discount: float = 0.0
    profit_discount: float = 0.0


@dataclass(frozen=True)
class SaleLine:
    item_id: int
    item_name: str
    quantity: int
    unit_price: float
    line_total: float
    returned_quantity: int = 0


@dataclass(frozen=True)
class Sale:
    id: Optional[int]
    number: str
    bill_type: BillType
    status: SaleStatus
    subtotal: float
    discount_amount: float
    tax_amount: float
    total_amount: float
    payment_method: PaymentMethod
    amount_tendered: float
    change_amount: float
    customer_id: Optional[int]
    is_credit_sale: bool
    created_at: str
    created_by: Optional[str]
    lines: tuple[SaleLine, ...] = ()
    notes: Optional[str] = None


@dataclass(frozen=True)
class PurchaseLine:
    item_id: int
    item_name: str
    quantity: int
    purchase_rate: float
    line_total: float


@dataclass(frozen=True)
class Purchase:
    id: int
    number: str
    vendor_id: int
    vendor_name: str
    bill_number: Optional[str]
    total_amount: float
    paid_amount: float
    pending_amount: float
    purchase_date: str
    notes: Optional[str] = None
    lines: tuple[PurchaseLine, ...] = ()


@dataclass(frozen=True)
class Expense:
    id: int
    category: ExpenseCategory
    description: str
    amount: float
    expense_date: str
    payment_method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


@dataclass(frozen=True)
class SalesReport:
    day: str
    total_sales: float
    total_transactions: int
    average_transaction: float
    top_selling_items: tuple[tuple[str, int, float], ...]
    payment_methods: tuple[tuple[str, int, float], ...]


@dataclass(frozen=True)
class DailyOperationsReport:
    day: str
    cash_sales: float
    card_sales: float
    digital_sales: float
    credit_sales: float
    total_sales: float
    total_discounts: float
    total_returns: float
    total_expenses: float
    total_purchases: float
    vendor_payments: float
    customer_collections: float
    cash_on_hand: float
    gross_profit: float
    net_profit: float
    transactions_count: int
    returns_count: int
    average_transaction_value: float
