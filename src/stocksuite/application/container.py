from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from stocksuite.config import AppContext
from stocksuite.repositories.sqlite_repo import SqliteRepository
from stocksuite.repositories.unit_of_work import RepositoryUnitOfWork
from stocksuite.services.checkout_service import CheckoutService
from stocksuite.services.customer_service import CustomerService
from stocksuite.services.excel_service import ExcelService
from stocksuite.services.expense_service import ExpenseService
from stocksuite.services.fx_service import FxService
from stocksuite.services.inventory_service import InventoryService
from stocksuite.services.ledger_service import LedgerService
from stocksuite.services.purchase_service import PurchaseService
from stocksuite.services.reporting_service import ReportingService
from stocksuite.services.valuation_service import ValuationService
from stocksuite.services.vendor_service import VendorService


@dataclass(frozen=True)
class AppContainer:
    context: AppContext
    repo: SqliteRepository
    fx: FxService
    ledger: LedgerService
    valuation: ValuationService
    inventory: InventoryService
    checkout: CheckoutService
    customers: CustomerService
    vendors: VendorService
    purchases: PurchaseService
    expenses: ExpenseService
    excel: ExcelService
    reporting: ReportingService


def build_container(db_path: Path | str, context: AppContext | None = None) -> AppContainer:
    context = context or AppContext()
    repo = SqliteRepository(db_path)
    repo.init_db()

    def uow_factory() -> RepositoryUnitOfWork:
        return RepositoryUnitOfWork(repo)

    fx = FxService(repo)
    ledger = LedgerService(repo, context)
    valuation = ValuationService(repo, repo)
    inventory = InventoryService(repo, context)
    checkout = CheckoutService(repo, context, uow_factory)
    customers = CustomerService(repo, context, uow_factory)
    vendors = VendorService(repo, context, uow_factory)
    purchases = PurchaseService(repo, context, uow_factory)
    expenses = ExpenseService(repo, context)
    excel = ExcelService(repo, inventory, ledger)
    reporting = ReportingService(repo, valuation, fx, expenses, context)

    return AppContainer(
        context=context,
        repo=repo,
        fx=fx,
        ledger=ledger,
        valuation=valuation,
        inventory=inventory,
        checkout=checkout,
        customers=customers,
        vendors=vendors,
        purchases=purchases,
        expenses=expenses,
        excel=excel,
        reporting=reporting,
    )
