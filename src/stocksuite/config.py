from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class AppContext:
    """Identity and business settings handed to the services that need them."""

    user_id: str = "system"
    business_name: str = "StockSuite Store"
    currency: str = "USD"
    tax_rate: float = 0.0
    low_stock_threshold: int = 10

    @classmethod
    def from_env(cls) -> "AppContext":
        return cls(
            user_id=os.environ.get("STOCKSUITE_USER", "").strip() or "system",
            business_name=os.environ.get("STOCKSUITE_BUSINESS_NAME", "").strip() or "StockSuite Store",
            currency=(os.environ.get("STOCKSUITE_CURRENCY", "").strip() or "USD").upper(),
            tax_rate=float(os.environ.get("STOCKSUITE_TAX_RATE", "0") or 0),
        )


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "StockSuite") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "stocksuite.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)
