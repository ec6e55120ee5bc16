from __future__ import annotations

import sqlite3
import shutil
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, TypeVar

from stocksuite.domain.errors import DataAccessError, InsufficientStockError, NotFoundError, ValidationError
from stocksuite.domain.models import (
    BillType,
    Category,
    Customer,
    CustomerPayment,
    Expense,
    ExpenseCategory,
    Item,
    MovementType,
    PaymentMethod,
    Purchase,
    PurchaseLine,
    Sale,
    SaleLine,
    SaleStatus,
    Transaction,
    Vendor,
    VendorPayment,
)

T = TypeVar("T")

ITEM_COLUMNS = "i.id, i.name, i.category_id, i.unit_price, i.quantity, i.is_archived, i.sku, i.barcode, i.low_stock_threshold"
TRANSACTION_COLUMNS = (
    "t.id, t.item_id, t.type, t.quantity, t.unit_price, t.transaction_date, "
    "t.created_by, t.reference, t.notes, i.name"
)
CUSTOMER_COLUMNS = "id, name, phone, outstanding_balance, total_purchases, email, address, is_active"
VENDOR_COLUMNS = "id, name, company, phone, outstanding_balance, total_purchases, email, address, is_active"
SALE_COLUMNS = (
    "id, number, bill_type, status, subtotal, discount_amount, tax_amount, total_amount, "
    "payment_method, amount_tendered, change_amount, customer_id, is_credit_sale, created_at, created_by, notes"
)
EXPENSE_COLUMNS = "id, category, description, amount, expense_date, payment_method, reference, notes, created_by"

EDITABLE_ITEM_FIELDS = {"name", "category_id", "unit_price", "sku", "barcode", "low_stock_threshold"}
EDITABLE_PARTY_FIELDS = {"name", "phone", "email", "address", "company"}
EDITABLE_EXPENSE_FIELDS = {"category", "description", "amount", "expense_date", "payment_method", "reference", "notes"}


def _record(kind: str, build: Callable[[tuple], T], row: tuple) -> T:
    try:
        return build(row)
    except (TypeError, ValueError) as exc:
        raise DataAccessError(f"Malformed {kind} record: {row!r}") from exc


def _opt(v):
    return None if v is None else str(v)


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path)
            conn.execute("PRAGMA foreign_keys = ON;")
        except sqlite3.Error as exc:
            raise DataAccessError(f"Store unavailable: {exc}") from exc
        return conn

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Cursor]:
        """One SQLite transaction: commit on success, roll back on any error."""
        conn = self._conn()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise DataAccessError(str(exc)) from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._tx() as cur:
            cur.execute(sql, params)
            return cur.fetchall()

    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[tuple]:
        with self._tx() as cur:
            cur.execute(sql, params)
            return cur.fetchone()

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_catalog_and_ledger),
                (2, self._migration_v2_parties),
                (3, self._migration_v3_sales_purchases_expenses),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise DataAccessError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_catalog_and_ledger(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            description TEXT
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            category_id INTEGER,
            unit_price REAL NOT NULL DEFAULT 0 CHECK(unit_price >= 0),
            quantity INTEGER NOT NULL DEFAULT 0 CHECK(quantity >= 0),
            is_archived INTEGER NOT NULL DEFAULT 0 CHECK(is_archived IN (0,1)),
            sku TEXT UNIQUE,
            barcode TEXT UNIQUE,
            low_stock_threshold INTEGER CHECK(low_stock_threshold IS NULL OR low_stock_threshold >= 0),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(category_id) REFERENCES categories(id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            item_id INTEGER NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('stock_in','stock_out')),
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            unit_price REAL NOT NULL CHECK(unit_price >= 0),
            transaction_date TEXT NOT NULL,
            created_by TEXT,
            reference TEXT,
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY(item_id) REFERENCES items(id)
        )
        """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(transaction_date, id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_transactions_item ON transactions(item_id)")

    def _migration_v2_parties(self, cur: sqlite3.Cursor) -> None:
        for table, extra in (("customers", ""), ("vendors", "company TEXT NOT NULL DEFAULT '',")):
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    {extra}
                    phone TEXT NOT NULL DEFAULT '',
                    email TEXT,
                    address TEXT,
                    outstanding_balance REAL NOT NULL DEFAULT 0,
                    total_purchases REAL NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1 CHECK(is_active IN (0,1)),
                    created_at TEXT NOT NULL DEFAULT (datetime('now')),
                    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
                )
                """
            )

        for table, fk in (("customer_payments", "customer_id"), ("vendor_payments", "vendor_id")):
            parent = "customers" if fk == "customer_id" else "vendors"
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {fk} INTEGER NOT NULL,
                    amount REAL NOT NULL CHECK(amount > 0),
                    payment_method TEXT NOT NULL,
                    payment_date TEXT NOT NULL,
                    reference TEXT,
                    notes TEXT,
                    created_by TEXT,
                    FOREIGN KEY({fk}) REFERENCES {parent}(id)
                )
                """
            )

    def _migration_v3_sales_purchases_expenses(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sales (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                number TEXT NOT NULL,
                bill_type TEXT NOT NULL CHECK(bill_type IN ('regular','quotation')),
                status TEXT NOT NULL CHECK(status IN ('completed','voided','returned')),
                subtotal REAL NOT NULL,
                discount_amount REAL NOT NULL DEFAULT 0,
                tax_amount REAL NOT NULL DEFAULT 0,
                total_amount REAL NOT NULL CHECK(total_amount >= 0),
                payment_method TEXT NOT NULL,
                amount_tendered REAL NOT NULL DEFAULT 0,
                change_amount REAL NOT NULL DEFAULT 0,
                customer_id INTEGER,
                is_credit_sale INTEGER NOT NULL DEFAULT 0 CHECK(is_credit_sale IN (0,1)),
                created_at TEXT NOT NULL,
                created_by TEXT,
                notes TEXT,
                status_reason TEXT,
                FOREIGN KEY(customer_id) REFERENCES customers(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sale_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sale_id INTEGER NOT NULL,
                item_id INTEGER NOT NULL,
                item_name TEXT NOT NULL,
                quantity INTEGER NOT NULL CHECK(quantity > 0),
                unit_price REAL NOT NULL CHECK(unit_price >= 0),
                unit_cost REAL NOT NULL DEFAULT 0,
                returned_quantity INTEGER NOT NULL DEFAULT 0 CHECK(returned_quantity >= 0),
                FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE,
                FOREIGN KEY(item_id) REFERENCES items(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sale_returns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sale_id INTEGER NOT NULL,
                number TEXT NOT NULL,
                total_refund REAL NOT NULL CHECK(total_refund >= 0),
                refund_method TEXT NOT NULL CHECK(refund_method IN ('cash','store_credit')),
                reason TEXT,
                created_at TEXT NOT NULL,
                created_by TEXT,
                FOREIGN KEY(sale_id) REFERENCES sales(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchases (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                number TEXT NOT NULL,
                vendor_id INTEGER NOT NULL,
                bill_number TEXT,
                total_amount REAL NOT NULL CHECK(total_amount >= 0),
                paid_amount REAL NOT NULL DEFAULT 0 CHECK(paid_amount >= 0),
                purchase_date TEXT NOT NULL,
                notes TEXT,
                created_by TEXT,
                FOREIGN KEY(vendor_id) REFERENCES vendors(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchase_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                purchase_id INTEGER NOT NULL,
                item_id INTEGER NOT NULL,
                quantity INTEGER NOT NULL CHECK(quantity > 0),
                purchase_rate REAL NOT NULL CHECK(purchase_rate >= 0),
                FOREIGN KEY(purchase_id) REFERENCES purchases(id) ON DELETE CASCADE,
                FOREIGN KEY(item_id) REFERENCES items(id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category TEXT NOT NULL,
                description TEXT NOT NULL,
                amount REAL NOT NULL CHECK(amount > 0),
                expense_date TEXT NOT NULL,
                payment_method TEXT NOT NULL,
                reference TEXT,
                notes TEXT,
                created_by TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS fx_rates (
                date TEXT NOT NULL,
                base TEXT NOT NULL,
                quote TEXT NOT NULL,
                rate REAL NOT NULL CHECK(rate > 0),
                PRIMARY KEY(date, base, quote)
            )
            """
        )

        self._add_column_if_missing(cur, "transactions", "sale_id", "INTEGER REFERENCES sales(id)")
        self._add_column_if_missing(cur, "transactions", "purchase_id", "INTEGER REFERENCES purchases(id)")

    def _add_column_if_missing(self, cur: sqlite3.Cursor, table: str, column: str, definition: str) -> None:
        cur.execute(f"PRAGMA table_info({table})")
        cols = {str(r[1]) for r in cur.fetchall()}
        if column in cols:
            return
        cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    # ---------- Row mapping ----------
    @staticmethod
    def _item(r: tuple) -> Item:
        return _record(
            "item",
            lambda r: Item(
                id=int(r[0]),
                name=str(r[1]),
                category_id=(int(r[2]) if r[2] is not None else None),
                unit_price=float(r[3]),
                quantity=int(r[4]),
                is_archived=int(r[5]),
                sku=_opt(r[6]),
                barcode=_opt(r[7]),
                low_stock_threshold=(int(r[8]) if r[8] is not None else None),
            ),
            r,
        )

    @staticmethod
    def _transaction(r: tuple) -> Transaction:
        return _record(
            "transaction",
            lambda r: Transaction(
                id=int(r[0]),
                item_id=int(r[1]),
                type=MovementType(r[2]),
                quantity=int(r[3]),
                unit_price=float(r[4]),
                transaction_date=str(r[5]),
                created_by=_opt(r[6]),
                reference=_opt(r[7]),
                notes=_opt(r[8]),
                item_name=_opt(r[9]),
            ),
            r,
        )

    @staticmethod
    def _customer(r: tuple) -> Customer:
        return _record(
            "customer",
            lambda r: Customer(
                id=int(r[0]),
                name=str(r[1]),
                phone=str(r[2]),
                outstanding_balance=float(r[3]),
                total_purchases=float(r[4]),
                email=_opt(r[5]),
                address=_opt(r[6]),
                is_active=int(r[7]),
            ),
            r,
        )

    @staticmethod
    def _vendor(r: tuple) -> Vendor:
        return _record(
            "vendor",
            lambda r: Vendor(
                id=int(r[0]),
                name=str(r[1]),
                company=str(r[2]),
                phone=str(r[3]),
                outstanding_balance=float(r[4]),
                total_purchases=float(r[5]),
                email=_opt(r[6]),
                address=_opt(r[7]),
                is_active=int(r[8]),
            ),
            r,
        )

    @staticmethod
    def _payment(kind: str, cls, r: tuple):
        return _record(
            kind,
            lambda r: cls(
                int(r[0]),
                int(r[1]),
                float(r[2]),
                PaymentMethod(r[3]),
                str(r[4]),
                _opt(r[5]),
                _opt(r[6]),
                _opt(r[7]),
            ),
            r,
        )

    @staticmethod
    def _sale(r: tuple, lines: tuple[SaleLine, ...] = ()) -> Sale:
        return _record(
            "sale",
            lambda r: Sale(
                id=int(r[0]),
                number=str(r[1]),
                bill_type=BillType(r[2]),
                status=SaleStatus(r[3]),
                subtotal=float(r[4]),
                discount_amount=float(r[5]),
                tax_amount=float(r[6]),
                total_amount=float(r[7]),
                payment_method=PaymentMethod(r[8]),
                amount_tendered=float(r[9]),
                change_amount=float(r[10]),
                customer_id=(int(r[11]) if r[11] is not None else None),
                is_credit_sale=bool(r[12]),
                created_at=str(r[13]),
                created_by=_opt(r[14]),
                lines=lines,
                notes=_opt(r[15]),
            ),
            r,
        )

    @staticmethod
    def _expense(r: tuple) -> Expense:
        return _record(
            "expense",
            lambda r: Expense(
                id=int(r[0]),
                category=ExpenseCategory(r[1]),
                description=str(r[2]),
                amount=float(r[3]),
                expense_date=str(r[4]),
                payment_method=PaymentMethod(r[5]),
                reference=_opt(r[6]),
                notes=_opt(r[7]),
                created_by=_opt(r[8]),
            ),
            r,
        )

    # ---------- Categories ----------
    def add_category(self, name: str, description: Optional[str] = None) -> int:
        with self._tx() as cur:
            cur.execute("INSERT INTO categories (name, description) VALUES (?, ?)", (name, description))
            return int(cur.lastrowid)

    def list_categories(self) -> list[Category]:
        rows = self._fetchall("SELECT id, name, description FROM categories ORDER BY name")
        return [Category(id=int(r[0]), name=str(r[1]), description=_opt(r[2])) for r in rows]

    def get_category(self, category_id: int) -> Optional[Category]:
        r = self._fetchone("SELECT id, name, description FROM categories WHERE id=?", (int(category_id),))
        return Category(id=int(r[0]), name=str(r[1]), description=_opt(r[2])) if r else None

    def get_category_by_name(self, name: str) -> Optional[Category]:
        r = self._fetchone("SELECT id, name, description FROM categories WHERE lower(name)=lower(?)", (name,))
        return Category(id=int(r[0]), name=str(r[1]), description=_opt(r[2])) if r else None

    def update_category(self, category_id: int, name: str, description: Optional[str]) -> bool:
        with self._tx() as cur:
            cur.execute("UPDATE categories SET name=?, description=? WHERE id=?", (name, description, int(category_id)))
            return cur.rowcount > 0

    def count_items_in_category(self, category_id: int) -> int:
        r = self._fetchone("SELECT COUNT(*) FROM items WHERE category_id=?", (int(category_id),))
        return int(r[0])

    def delete_category(self, category_id: int) -> bool:
        with self._tx() as cur:
            cur.execute("DELETE FROM categories WHERE id=?", (int(category_id),))
            return cur.rowcount > 0

    # ---------- Items ----------
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
        datetime_iso: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> int:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO items (name, category_id, unit_price, sku, barcode, low_stock_threshold)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, category_id, float(unit_price), sku, barcode, low_stock_threshold),
            )
            item_id = int(cur.lastrowid)
            if opening_quantity > 0:
                self._insert_movement(
                    cur,
                    item_id,
                    MovementType.STOCK_IN,
                    int(opening_quantity),
                    float(opening_cost),
                    datetime_iso or datetime.now().replace(microsecond=0).isoformat(sep=" "),
                    created_by,
                    "OPENING",
                    "Opening stock",
                )
            return item_id

    def get_item(self, item_id: int) -> Optional[Item]:
        r = self._fetchone(f"SELECT {ITEM_COLUMNS} FROM items i WHERE i.id=?", (int(item_id),))
        return self._item(r) if r else None

    def get_item_by_sku(self, sku: str) -> Optional[Item]:
        r = self._fetchone(f"SELECT {ITEM_COLUMNS} FROM items i WHERE i.sku=?", (sku,))
        return self._item(r) if r else None

    def get_item_by_barcode(self, barcode: str) -> Optional[Item]:
        r = self._fetchone(f"SELECT {ITEM_COLUMNS} FROM items i WHERE i.barcode=? AND i.is_archived=0", (barcode,))
        return self._item(r) if r else None

    def list_items(self, include_archived: bool = False) -> list[Item]:
        where = "" if include_archived else "WHERE i.is_archived = 0"
        rows = self._fetchall(f"SELECT {ITEM_COLUMNS} FROM items i {where} ORDER BY i.name, i.id")
        return [self._item(r) for r in rows]

    def update_item(self, item_id: int, fields: dict) -> bool:
        unknown = set(fields) - EDITABLE_ITEM_FIELDS
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_item(item_id) is not None
        assignments = ", ".join(f"{k}=?" for k in fields)
        with self._tx() as cur:
            cur.execute(f"UPDATE items SET {assignments} WHERE id=?", (*fields.values(), int(item_id)))
            return cur.rowcount > 0

    def archive_item(self, item_id: int) -> bool:
        with self._tx() as cur:
            cur.execute("UPDATE items SET is_archived=1 WHERE id=? AND is_archived=0", (int(item_id),))
            return cur.rowcount > 0

    # ---------- Ledger ----------
    def list_transactions(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None) -> list[Transaction]:
        clauses, params = [], []
        if start_iso is not None:
            clauses.append("t.transaction_date >= ?")
            params.append(start_iso)
        if end_iso is not None:
            clauses.append("t.transaction_date < ?")
            params.append(end_iso)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(
            f"""
            SELECT {TRANSACTION_COLUMNS}
            FROM transactions t
            LEFT JOIN items i ON i.id = t.item_id
            {where}
            ORDER BY t.transaction_date ASC, t.id ASC
            """,
            tuple(params),
        )
        return [self._transaction(r) for r in rows]

    def transactions_for_item(self, item_id: int) -> list[Transaction]:
        rows = self._fetchall(
            f"""
            SELECT {TRANSACTION_COLUMNS}
            FROM transactions t
            LEFT JOIN items i ON i.id = t.item_id
            WHERE t.item_id = ?
            ORDER BY t.transaction_date DESC, t.id DESC
            """,
            (int(item_id),),
        )
        return [self._transaction(r) for r in rows]

    def recent_transactions(self, limit: int = 5) -> list[Transaction]:
        rows = self._fetchall(
            f"""
            SELECT {TRANSACTION_COLUMNS}
            FROM transactions t
            LEFT JOIN items i ON i.id = t.item_id
            ORDER BY t.transaction_date DESC, t.id DESC
            LIMIT ?
            """,
            (int(limit),),
        )
        return [self._transaction(r) for r in rows]

    def _ledger_stock(self, cur: sqlite3.Cursor, item_id: int) -> int:
        cur.execute(
            """
            SELECT COALESCE(SUM(CASE WHEN type='stock_in' THEN quantity ELSE -quantity END), 0)
            FROM transactions
            WHERE item_id = ?
            """,
            (int(item_id),),
        )
        return max(0, int(cur.fetchone()[0]))

    def ledger_stock(self, item_id: int) -> int:
        with self._tx() as cur:
            return self._ledger_stock(cur, item_id)

    def _available_at(self, cur: sqlite3.Cursor, item_id: int, datetime_iso: str) -> int:
        """Largest stock_out dated `datetime_iso` that keeps every later running balance >= 0.

        A new entry sorts after existing entries with the same date, so the
        balance at that point includes them.
        """
        cur.execute(
            """
            SELECT type, quantity, transaction_date
            FROM transactions
            WHERE item_id = ?
            ORDER BY transaction_date ASC, id ASC
            """,
            (int(item_id),),
        )
        balance = 0
        available: Optional[int] = None
        for kind, qty, when in cur.fetchall():
            if available is None and str(when) > datetime_iso:
                available = balance
            balance += int(qty) if kind == "stock_in" else -int(qty)
            if available is not None:
                available = min(available, balance)
        if available is None:
            available = balance
        return max(0, available)

    def available_stock(self, item_id: int, datetime_iso: str) -> int:
        with self._tx() as cur:
            return self._available_at(cur, item_id, datetime_iso)

    def ledger_stock_map(self) -> dict[int, int]:
        rows = self._fetchall(
            """
            SELECT item_id, SUM(CASE WHEN type='stock_in' THEN quantity ELSE -quantity END)
            FROM transactions
            GROUP BY item_id
            """
        )
        return {int(r[0]): max(0, int(r[1])) for r in rows}

    def _last_cost(self, cur: sqlite3.Cursor, item_id: int) -> float:
        cur.execute(
            """
            SELECT unit_price FROM transactions
            WHERE item_id=? AND type='stock_in'
            ORDER BY transaction_date DESC, id DESC
            LIMIT 1
            """,
            (int(item_id),),
        )
        row = cur.fetchone()
        return float(row[0]) if row else 0.0

    def _insert_movement(
        self,
        cur: sqlite3.Cursor,
        item_id: int,
        movement: MovementType,
        quantity: int,
        unit_price: float,
        datetime_iso: str,
        created_by: Optional[str],
        reference: Optional[str],
        notes: Optional[str],
        sale_id: Optional[int] = None,
        purchase_id: Optional[int] = None,
    ) -> int:
        cur.execute(
            """
            INSERT INTO transactions (
                item_id, type, quantity, unit_price, transaction_date,
                created_by, reference, notes, sale_id, purchase_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(item_id),
                movement.value,
                int(quantity),
                float(unit_price),
                datetime_iso,
                created_by,
                reference,
                notes,
                sale_id,
                purchase_id,
            ),
        )
        tx_id = int(cur.lastrowid)
        if movement is MovementType.STOCK_IN:
            cur.execute("UPDATE items SET quantity = quantity + ? WHERE id = ?", (int(quantity), int(item_id)))
        else:
            cur.execute("UPDATE items SET quantity = MAX(quantity - ?, 0) WHERE id = ?", (int(quantity), int(item_id)))
        return tx_id

    def _require_active_item(self, cur: sqlite3.Cursor, item_id: int) -> str:
        cur.execute("SELECT name FROM items WHERE id=? AND is_archived=0", (int(item_id),))
        row = cur.fetchone()
        if not row:
            raise NotFoundError(f"Item not found: {item_id}")
        return str(row[0])

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
    ) -> int:
        with self._tx() as cur:
            name = self._require_active_item(cur, item_id)
            if movement is MovementType.STOCK_OUT:
                available = self._available_at(cur, item_id, datetime_iso)
                if quantity > available:
                    raise InsufficientStockError(f"Insufficient stock for {name}. Available: {available}")
            return self._insert_movement(cur, item_id, movement, quantity, unit_price, datetime_iso, created_by, reference, notes)

    # ---------- Customers ----------
    def add_customer(self, name: str, phone: str, email: Optional[str] = None, address: Optional[str] = None) -> int:
        with self._tx() as cur:
            cur.execute(
                "INSERT INTO customers (name, phone, email, address) VALUES (?, ?, ?, ?)",
                (name, phone, email, address),
            )
            return int(cur.lastrowid)

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        r = self._fetchone(f"SELECT {CUSTOMER_COLUMNS} FROM customers WHERE id=?", (int(customer_id),))
        return self._customer(r) if r else None

    def list_customers(self, include_inactive: bool = False) -> list[Customer]:
        where = "" if include_inactive else "WHERE is_active = 1"
        rows = self._fetchall(f"SELECT {CUSTOMER_COLUMNS} FROM customers {where} ORDER BY name, id")
        return [self._customer(r) for r in rows]

    def _update_party(self, table: str, party_id: int, fields: dict) -> bool:
        unknown = set(fields) - EDITABLE_PARTY_FIELDS
        if table == "customers":
            unknown |= set(fields) & {"company"}
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
        if not fields:
            return False
        assignments = ", ".join(f"{k}=?" for k in fields)
        with self._tx() as cur:
            cur.execute(
                f"UPDATE {table} SET {assignments}, updated_at=datetime('now') WHERE id=?",
                (*fields.values(), int(party_id)),
            )
            return cur.rowcount > 0

    def update_customer(self, customer_id: int, fields: dict) -> bool:
        return self._update_party("customers", customer_id, fields)

    def deactivate_customer(self, customer_id: int) -> bool:
        with self._tx() as cur:
            cur.execute(
                "UPDATE customers SET is_active=0, updated_at=datetime('now') WHERE id=? AND is_active=1",
                (int(customer_id),),
            )
            return cur.rowcount > 0

    def _charge_customer(self, cur: sqlite3.Cursor, customer_id: int, amount: float, count_purchase: bool = True) -> None:
        purchases_delta = float(amount) if count_purchase else 0.0
        cur.execute(
            """
            UPDATE customers
            SET outstanding_balance = outstanding_balance + ?,
                total_purchases = total_purchases + ?,
                updated_at = datetime('now')
            WHERE id = ?
            """,
            (float(amount), purchases_delta, int(customer_id)),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Customer not found: {customer_id}")

    def record_customer_payment(
        self,
        customer_id: int,
        amount: float,
        payment_method: PaymentMethod,
        payment_date: str,
        reference: Optional[str],
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int:
        with self._tx() as cur:
            self._charge_customer(cur, customer_id, -float(amount), count_purchase=False)
            cur.execute(
                """
                INSERT INTO customer_payments (customer_id, amount, payment_method, payment_date, reference, notes, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (int(customer_id), float(amount), payment_method.value, payment_date, reference, notes, created_by),
            )
            return int(cur.lastrowid)

    def customer_payments(self, customer_id: int) -> list[CustomerPayment]:
        rows = self._fetchall(
            """
            SELECT id, customer_id, amount, payment_method, payment_date, reference, notes, created_by
            FROM customer_payments WHERE customer_id=?
            ORDER BY payment_date DESC, id DESC
            """,
            (int(customer_id),),
        )
        return [self._payment("customer payment", CustomerPayment, r) for r in rows]

    def customer_payments_total_between(self, start_iso: str, end_iso: str) -> float:
        r = self._fetchone(
            "SELECT COALESCE(SUM(amount), 0) FROM customer_payments WHERE payment_date >= ? AND payment_date < ?",
            (start_iso, end_iso),
        )
        return float(r[0])

    # ---------- Vendors ----------
    def add_vendor(self, name: str, company: str, phone: str, email: Optional[str] = None, address: Optional[str] = None) -> int:
        with self._tx() as cur:
            cur.execute(
                "INSERT INTO vendors (name, company, phone, email, address) VALUES (?, ?, ?, ?, ?)",
                (name, company, phone, email, address),
            )
            return int(cur.lastrowid)

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        r = self._fetchone(f"SELECT {VENDOR_COLUMNS} FROM vendors WHERE id=?", (int(vendor_id),))
        return self._vendor(r) if r else None

    def list_vendors(self, include_inactive: bool = False) -> list[Vendor]:
        where = "" if include_inactive else "WHERE is_active = 1"
        rows = self._fetchall(f"SELECT {VENDOR_COLUMNS} FROM vendors {where} ORDER BY name, id")
        return [self._vendor(r) for r in rows]

    def update_vendor(self, vendor_id: int, fields: dict) -> bool:
        return self._update_party("vendors", vendor_id, fields)

    def deactivate_vendor(self, vendor_id: int) -> bool:
        with self._tx() as cur:
            cur.execute(
                "UPDATE vendors SET is_active=0, updated_at=datetime('now') WHERE id=? AND is_active=1",
                (int(vendor_id),),
            )
            return cur.rowcount > 0

    def delete_vendor(self, vendor_id: int) -> bool:
        with self._tx() as cur:
            cur.execute("SELECT COUNT(*) FROM purchases WHERE vendor_id=?", (int(vendor_id),))
            if int(cur.fetchone()[0]) > 0:
                # purchases stay as history; the vendor is hidden instead
                cur.execute("UPDATE vendors SET is_active=0 WHERE id=?", (int(vendor_id),))
                return cur.rowcount > 0
            cur.execute("DELETE FROM vendor_payments WHERE vendor_id=?", (int(vendor_id),))
            cur.execute("DELETE FROM vendors WHERE id=?", (int(vendor_id),))
            return cur.rowcount > 0

    def _charge_vendor(self, cur: sqlite3.Cursor, vendor_id: int, balance_delta: float, purchases_delta: float) -> None:
        cur.execute(
            """
            UPDATE vendors
            SET outstanding_balance = outstanding_balance + ?,
                total_purchases = total_purchases + ?,
                updated_at = datetime('now')
            WHERE id = ?
            """,
            (float(balance_delta), float(purchases_delta), int(vendor_id)),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Vendor not found: {vendor_id}")

    def record_vendor_payment(
        self,
        vendor_id: int,
        amount: float,
        payment_method: PaymentMethod,
        payment_date: str,
        reference: Optional[str],
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int:
        with self._tx() as cur:
            self._charge_vendor(cur, vendor_id, -float(amount), 0.0)
            cur.execute(
                """
                INSERT INTO vendor_payments (vendor_id, amount, payment_method, payment_date, reference, notes, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (int(vendor_id), float(amount), payment_method.value, payment_date, reference, notes, created_by),
            )
            return int(cur.lastrowid)

    def vendor_payments(self, vendor_id: int) -> list[VendorPayment]:
        rows = self._fetchall(
            """
            SELECT id, vendor_id, amount, payment_method, payment_date, reference, notes, created_by
            FROM vendor_payments WHERE vendor_id=?
            ORDER BY payment_date DESC, id DESC
            """,
            (int(vendor_id),),
        )
        return [self._payment("vendor payment", VendorPayment, r) for r in rows]

    def vendor_payments_total_between(self, start_iso: str, end_iso: str) -> float:
        r = self._fetchone(
            "SELECT COALESCE(SUM(amount), 0) FROM vendor_payments WHERE payment_date >= ? AND payment_date < ?",
            (start_iso, end_iso),
        )
        return float(r[0])

    # ---------- Purchases ----------
    def create_purchase(
        self,
        number: str,
        vendor_id: int,
        bill_number: Optional[str],
        items: Iterable[dict],
        paid_amount: float,
        purchase_date: str,
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int:
        """items: [{item_id, quantity, purchase_rate}]"""
        items = list(items)
        total = sum(int(it["quantity"]) * float(it["purchase_rate"]) for it in items)
        with self._tx() as cur:
            cur.execute("SELECT name FROM vendors WHERE id=? AND is_active=1", (int(vendor_id),))
            vendor = cur.fetchone()
            if not vendor:
                raise NotFoundError(f"Vendor not found: {vendor_id}")

            cur.execute(
                """
                INSERT INTO purchases (number, vendor_id, bill_number, total_amount, paid_amount, purchase_date, notes, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (number, int(vendor_id), bill_number, float(total), float(paid_amount), purchase_date, notes, created_by),
            )
            purchase_id = int(cur.lastrowid)

            for it in items:
                item_id = int(it["item_id"])
                self._require_active_item(cur, item_id)
                cur.execute(
                    "INSERT INTO purchase_items (purchase_id, item_id, quantity, purchase_rate) VALUES (?, ?, ?, ?)",
                    (purchase_id, item_id, int(it["quantity"]), float(it["purchase_rate"])),
                )
                self._insert_movement(
                    cur,
                    item_id,
                    MovementType.STOCK_IN,
                    int(it["quantity"]),
                    float(it["purchase_rate"]),
                    purchase_date,
                    created_by,
                    bill_number or number,
                    f"Purchase from {vendor[0]}",
                    purchase_id=purchase_id,
                )

            self._charge_vendor(cur, vendor_id, total - float(paid_amount), total)
            return purchase_id

    def _purchase_lines(self, cur: sqlite3.Cursor, purchase_id: int) -> tuple[PurchaseLine, ...]:
        cur.execute(
            """
            SELECT pi.item_id, i.name, pi.quantity, pi.purchase_rate, pi.quantity * pi.purchase_rate
            FROM purchase_items pi
            JOIN items i ON i.id = pi.item_id
            WHERE pi.purchase_id = ?
            ORDER BY pi.id
            """,
            (int(purchase_id),),
        )
        return tuple(
            PurchaseLine(item_id=int(r[0]), item_name=str(r[1]), quantity=int(r[2]), purchase_rate=float(r[3]), line_total=float(r[4]))
            for r in cur.fetchall()
        )

    def _purchases(self, where: str, params: tuple) -> list[Purchase]:
        with self._tx() as cur:
            cur.execute(
                f"""
                SELECT p.id, p.number, p.vendor_id, v.name, p.bill_number, p.total_amount, p.paid_amount,
                       p.purchase_date, p.notes
                FROM purchases p
                JOIN vendors v ON v.id = p.vendor_id
                {where}
                ORDER BY p.purchase_date DESC, p.id DESC
                """,
                params,
            )
            rows = cur.fetchall()
            return [
                Purchase(
                    id=int(r[0]),
                    number=str(r[1]),
                    vendor_id=int(r[2]),
                    vendor_name=str(r[3]),
                    bill_number=_opt(r[4]),
                    total_amount=float(r[5]),
                    paid_amount=float(r[6]),
                    pending_amount=float(r[5]) - float(r[6]),
                    purchase_date=str(r[7]),
                    notes=_opt(r[8]),
                    lines=self._purchase_lines(cur, int(r[0])),
                )
                for r in rows
            ]

    def list_purchases(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None) -> list[Purchase]:
        if start_iso is None or end_iso is None:
            return self._purchases("", ())
        return self._purchases("WHERE p.purchase_date >= ? AND p.purchase_date < ?", (start_iso, end_iso))

    def purchases_by_vendor(self, vendor_id: int) -> list[Purchase]:
        return self._purchases("WHERE p.vendor_id = ?", (int(vendor_id),))

    # ---------- Sales ----------
    def create_sale(self, header: dict, lines: Iterable[dict]) -> int:
        """
        header: {number, subtotal, discount_amount, tax_amount, total_amount, payment_method,
                 amount_tendered, change_amount, customer_id, is_credit_sale, created_at, created_by, notes}
        lines:  [{item_id, quantity, unit_price}]

        Sale record, stock_out entries, item counters and the customer charge
        commit together or not at all.
        """
        lines = list(lines)
        with self._tx() as cur:
            requested: dict[int, int] = {}
            names: dict[int, str] = {}
            for ln in lines:
                item_id = int(ln["item_id"])
                names[item_id] = self._require_active_item(cur, item_id)
                requested[item_id] = requested.get(item_id, 0) + int(ln["quantity"])
            for item_id, qty in requested.items():
                available = self._available_at(cur, item_id, header["created_at"])
                if qty > available:
                    raise InsufficientStockError(f"Insufficient stock for {names[item_id]}. Available: {available}")

            cur.execute(
                """
                INSERT INTO sales (
                    number, bill_type, status, subtotal, discount_amount, tax_amount, total_amount,
                    payment_method, amount_tendered, change_amount, customer_id, is_credit_sale,
                    created_at, created_by, notes
                ) VALUES (?, 'regular', 'completed', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    header["number"],
                    float(header["subtotal"]),
                    float(header["discount_amount"]),
                    float(header["tax_amount"]),
                    float(header["total_amount"]),
                    header["payment_method"],
                    float(header["amount_tendered"]),
                    float(header["change_amount"]),
                    header.get("customer_id"),
                    1 if header.get("is_credit_sale") else 0,
                    header["created_at"],
                    header.get("created_by"),
                    header.get("notes"),
                ),
            )
            sale_id = int(cur.lastrowid)

            for ln in lines:
                self._apply_sale_line(cur, sale_id, header, ln, names[int(ln["item_id"])])

            if header.get("is_credit_sale"):
                self._charge_customer(cur, int(header["customer_id"]), float(header["total_amount"]))
            return sale_id

    def _apply_sale_line(self, cur: sqlite3.Cursor, sale_id: int, header: dict, ln: dict, item_name: str) -> None:
        item_id = int(ln["item_id"])
        cur.execute(
            """
            INSERT INTO sale_items (sale_id, item_id, item_name, quantity, unit_price, unit_cost)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (sale_id, item_id, item_name, int(ln["quantity"]), float(ln["unit_price"]), self._last_cost(cur, item_id)),
        )
        self._insert_movement(
            cur,
            item_id,
            MovementType.STOCK_OUT,
            int(ln["quantity"]),
            float(ln["unit_price"]),
            header["created_at"],
            header.get("created_by"),
            header["number"],
            f"POS Sale - Transaction #{header['number']}",
            sale_id=sale_id,
        )

    def _sale_lines(self, cur: sqlite3.Cursor, sale_id: int) -> tuple[SaleLine, ...]:
        cur.execute(
            """
            SELECT item_id, item_name, quantity, unit_price, quantity * unit_price, returned_quantity
            FROM sale_items WHERE sale_id=? ORDER BY id
            """,
            (int(sale_id),),
        )
        return tuple(
            SaleLine(
                item_id=int(r[0]),
                item_name=str(r[1]),
                quantity=int(r[2]),
                unit_price=float(r[3]),
                line_total=float(r[4]),
                returned_quantity=int(r[5]),
            )
            for r in cur.fetchall()
        )

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        with self._tx() as cur:
            cur.execute(f"SELECT {SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
            r = cur.fetchone()
            if not r:
                return None
            return self._sale(r, self._sale_lines(cur, int(r[0])))

    def list_sales(self, limit: Optional[int] = None) -> list[Sale]:
        sql = f"SELECT {SALE_COLUMNS} FROM sales ORDER BY created_at DESC, id DESC"
        params: tuple = ()
        if limit:
            sql += " LIMIT ?"
            params = (int(limit),)
        with self._tx() as cur:
            cur.execute(sql, params)
            return [self._sale(r, self._sale_lines(cur, int(r[0]))) for r in cur.fetchall()]

    def sales_between(self, start_iso: str, end_iso: str, status: Optional[SaleStatus] = None) -> list[Sale]:
        sql = f"SELECT {SALE_COLUMNS} FROM sales WHERE created_at >= ? AND created_at < ?"
        params: tuple = (start_iso, end_iso)
        if status is not None:
            sql += " AND status = ?"
            params += (status.value,)
        sql += " ORDER BY created_at DESC, id DESC"
        with self._tx() as cur:
            cur.execute(sql, params)
            return [self._sale(r, self._sale_lines(cur, int(r[0]))) for r in cur.fetchall()]

    def cost_of_goods_between(self, start_iso: str, end_iso: str) -> float:
        r = self._fetchone(
            """
            SELECT COALESCE(SUM(si.quantity * si.unit_cost), 0)
            FROM sale_items si
            JOIN sales s ON s.id = si.sale_id
            WHERE s.status = 'completed' AND s.created_at >= ? AND s.created_at < ?
            """,
            (start_iso, end_iso),
        )
        return float(r[0])

    def void_sale(self, sale_id: int, reason: str, created_by: Optional[str], datetime_iso: str) -> None:
        with self._tx() as cur:
            cur.execute(f"SELECT {SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
            r = cur.fetchone()
            if not r:
                raise NotFoundError(f"Sale not found: {sale_id}")
            sale = self._sale(r, self._sale_lines(cur, int(sale_id)))
            if sale.status is not SaleStatus.COMPLETED:
                raise ValidationError(f"Sale {sale.number} is already {sale.status.value}.")
            if any(ln.returned_quantity for ln in sale.lines):
                raise ValidationError(f"Sale {sale.number} has returns; return the remaining items instead.")

            cur.execute(
                "UPDATE sales SET status='voided', status_reason=? WHERE id=?",
                (reason, int(sale_id)),
            )
            for ln in sale.lines:
                self._insert_movement(
                    cur,
                    ln.item_id,
                    MovementType.STOCK_IN,
                    ln.quantity,
                    ln.unit_price,
                    datetime_iso,
                    created_by,
                    f"VOID-{sale.number}",
                    f"Voided Transaction #{sale.number}. Reason: {reason}",
                    sale_id=int(sale_id),
                )
            if sale.is_credit_sale and sale.customer_id is not None:
                self._charge_customer(cur, sale.customer_id, -sale.total_amount)

    def record_sale_return(
        self,
        sale_id: int,
        number: str,
        lines: Iterable[dict],
        reason: str,
        refund_method: str,
        created_by: Optional[str],
        datetime_iso: str,
    ) -> tuple[int, float]:
        """lines: [{item_id, quantity}]; returns (return_id, total_refund)."""
        lines = list(lines)
        with self._tx() as cur:
            cur.execute(f"SELECT {SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
            r = cur.fetchone()
            if not r:
                raise NotFoundError(f"Sale not found: {sale_id}")
            sale = self._sale(r, self._sale_lines(cur, int(sale_id)))
            if sale.status is not SaleStatus.COMPLETED:
                raise ValidationError(f"Sale {sale.number} is {sale.status.value}; nothing to return.")

            by_item = {ln.item_id: ln for ln in sale.lines}
            refund = 0.0
            for ret in lines:
                item_id = int(ret["item_id"])
                qty = int(ret["quantity"])
                sold = by_item.get(item_id)
                if sold is None:
                    raise ValidationError(f"Item {item_id} is not part of sale {sale.number}.")
                if qty <= 0 or qty > sold.quantity - sold.returned_quantity:
                    raise ValidationError(
                        f"Cannot return {qty} of {sold.item_name}; returnable: {sold.quantity - sold.returned_quantity}"
                    )
                refund += qty * sold.unit_price
                cur.execute(
                    "UPDATE sale_items SET returned_quantity = returned_quantity + ? WHERE sale_id=? AND item_id=?",
                    (qty, int(sale_id), item_id),
                )
                self._insert_movement(
                    cur,
                    item_id,
                    MovementType.STOCK_IN,
                    qty,
                    sold.unit_price,
                    datetime_iso,
                    created_by,
                    number,
                    f"Return from Transaction #{sale.number}. Reason: {reason}",
                    sale_id=int(sale_id),
                )

            cur.execute(
                """
                INSERT INTO sale_returns (sale_id, number, total_refund, refund_method, reason, created_at, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (int(sale_id), number, refund, refund_method, reason, datetime_iso, created_by),
            )
            return_id = int(cur.lastrowid)

            if refund_method == "store_credit":
                if sale.customer_id is None:
                    raise ValidationError("Store credit needs a sale with a customer.")
                self._charge_customer(cur, sale.customer_id, -refund, count_purchase=False)

            cur.execute("SELECT COUNT(*) FROM sale_items WHERE sale_id=? AND returned_quantity < quantity", (int(sale_id),))
            if int(cur.fetchone()[0]) == 0:
                cur.execute("UPDATE sales SET status='returned', status_reason=? WHERE id=?", (reason, int(sale_id)))
            return return_id, refund

    def returns_between(self, start_iso: str, end_iso: str) -> tuple[int, float, float]:
        """(count, total refunded, refunded in cash) for returns in [start, end)."""
        r = self._fetchone(
            """
            SELECT COUNT(*),
                   COALESCE(SUM(total_refund), 0),
                   COALESCE(SUM(CASE WHEN refund_method='cash' THEN total_refund ELSE 0 END), 0)
            FROM sale_returns
            WHERE created_at >= ? AND created_at < ?
            """,
            (start_iso, end_iso),
        )
        return int(r[0]), float(r[1]), float(r[2])

    # ---------- Expenses ----------
    def add_expense(
        self,
        category: ExpenseCategory,
        description: str,
        amount: float,
        expense_date: str,
        payment_method: PaymentMethod,
        reference: Optional[str],
        notes: Optional[str],
        created_by: Optional[str],
    ) -> int:
        with self._tx() as cur:
            cur.execute(
                f"INSERT INTO expenses ({EXPENSE_COLUMNS.replace('id, ', '', 1)}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (category.value, description, float(amount), expense_date, payment_method.value, reference, notes, created_by),
            )
            return int(cur.lastrowid)

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        r = self._fetchone(f"SELECT {EXPENSE_COLUMNS} FROM expenses WHERE id=?", (int(expense_id),))
        return self._expense(r) if r else None

    def list_expenses(
        self,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        clauses, params = [], []
        if start_iso is not None:
            clauses.append("expense_date >= ?")
            params.append(start_iso)
        if end_iso is not None:
            clauses.append("expense_date < ?")
            params.append(end_iso)
        if category is not None:
            clauses.append("category = ?")
            params.append(category.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(
            f"SELECT {EXPENSE_COLUMNS} FROM expenses {where} ORDER BY expense_date DESC, id DESC",
            tuple(params),
        )
        return [self._expense(r) for r in rows]

    def update_expense(self, expense_id: int, fields: dict) -> bool:
        unknown = set(fields) - EDITABLE_EXPENSE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_expense(expense_id) is not None
        assignments = ", ".join(f"{k}=?" for k in fields)
        with self._tx() as cur:
            cur.execute(f"UPDATE expenses SET {assignments} WHERE id=?", (*fields.values(), int(expense_id)))
            return cur.rowcount > 0

    def delete_expense(self, expense_id: int) -> bool:
        with self._tx() as cur:
            cur.execute("DELETE FROM expenses WHERE id=?", (int(expense_id),))
            return cur.rowcount > 0

    # ---------- FX ----------
    def get_fx_rate(self, date_iso: str, base: str, quote: str) -> Optional[float]:
        r = self._fetchone("SELECT rate FROM fx_rates WHERE date=? AND base=? AND quote=?", (date_iso, base, quote))
        return float(r[0]) if r else None

    def set_fx_rate(self, date_iso: str, base: str, quote: str, rate: float) -> None:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO fx_rates (date, base, quote, rate) VALUES (?, ?, ?, ?)
                ON CONFLICT(date, base, quote) DO UPDATE SET rate=excluded.rate
            """,
                (date_iso, base, quote, float(rate)),
            )

    def get_latest_fx_rate(self, base: str, quote: str) -> Optional[float]:
        r = self._fetchone(
            "SELECT rate FROM fx_rates WHERE base=? AND quote=? ORDER BY date DESC LIMIT 1",
            (base, quote),
        )
        return float(r[0]) if r else None
