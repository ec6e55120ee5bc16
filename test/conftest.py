import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture
def app(tmp_path: Path):
    from stocksuite.application.container import build_container
    from stocksuite.config import AppContext

    return build_container(tmp_path / "t.db", AppContext(user_id="tester"))


def stock_item(app, name: str = "Widget", price: float = 20.0, qty: int = 10, cost: float = 5.0, **kwargs) -> int:
    return app.inventory.add_item(name, None, price, opening_quantity=qty, opening_cost=cost, **kwargs)
