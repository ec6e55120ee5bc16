from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from stocksuite.domain.errors import AppError

log = logging.getLogger("stocksuite.actions")

T = TypeVar("T")


@dataclass(frozen=True)
class Notification:
    kind: str  # info | success | warn | error
    message: str


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    value: Optional[T]
    notification: Notification

    @property
    def ok(self) -> bool:
        return self.notification.kind != "error"


def run_action(title: str, action: Callable[[], T], success_message: Optional[str] = None) -> ActionResult[T]:
    """
    Boundary between user-facing callers and services: errors become
    notifications and never escape.
    """
    try:
        value = action()
    except AppError as e:
        log.warning("%s failed: %s", title, e)
        return ActionResult(None, Notification("error", f"{title}: {e}"))
    except Exception:
        log.exception("%s failed unexpectedly", title)
        return ActionResult(None, Notification("error", f"{title}: unexpected error. See logs for details."))
    return ActionResult(value, Notification("success", success_message or f"{title}: done."))
