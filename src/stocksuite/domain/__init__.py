from .models import (
    Batch,
    BillType,
    CartLine,
    Category,
    CostingMethod,
    Customer,
    Item,
    ItemValuation,
    MovementType,
    PaymentData,
    PaymentMethod,
    Sale,
    Transaction,
    ValuationResult,
    Vendor,
)
from .errors import (
    AppError,
    DataAccessError,
    FxUnavailableError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "Batch",
    "BillType",
    "CartLine",
    "Category",
    "CostingMethod",
    "Customer",
    "Item",
    "ItemValuation",
    "MovementType",
    "PaymentData",
    "PaymentMethod",
    "Sale",
    "Transaction",
    "ValuationResult",
    "Vendor",
    "AppError",
    "DataAccessError",
    "FxUnavailableError",
    "InsufficientStockError",
    "NotFoundError",
    "ValidationError",
]
