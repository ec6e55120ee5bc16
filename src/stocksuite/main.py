from __future__ import annotations

import logging
import sys

from stocksuite.application.actions import run_action
from stocksuite.application.container import build_container
from stocksuite.config import AppContext, get_app_paths
from stocksuite.domain.models import CostingMethod
from stocksuite.logging_config import setup_logging


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = build_container(paths.db_path, AppContext.from_env())
    method = argv[0] if argv else CostingMethod.FIFO

    res = run_action("Inventory valuation", lambda: container.valuation.calculate_valuation(method))
    if not res.ok:
        print(res.notification.message, file=sys.stderr)
        return 1

    result = res.value
    print(f"{container.context.business_name} - {result.method.value} valuation")
    for v in result.items:
        print(f"  {v.item_name:<30} {v.current_stock:>8} {v.total_value:>14,.2f}")
    print(f"  {'Total':<30} {'':>8} {result.total_value:>14,.2f} {container.context.currency}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
