from .batch_tracker import BatchCostTracker, replay
from .checkout_service import Cart, CheckoutService
from .customer_service import CustomerService
from .excel_service import ExcelService
from .expense_service import ExpenseService
from .fx_service import FxService
from .inventory_service import InventoryService
from .ledger_service import LedgerService
from .purchase_service import PurchaseService
from .reporting_service import ReportingService
from .valuation_service import ValuationService
from .vendor_service import VendorService

__all__ = [
    "BatchCostTracker",
    "replay",
    "Cart",
    "CheckoutService",
    "CustomerService",
    "ExcelService",
    "ExpenseService",
    "FxService",
    "InventoryService",
    "LedgerService",
    "PurchaseService",
    "ReportingService",
    "ValuationService",
    "VendorService",
]
