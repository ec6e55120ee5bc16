from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from stocksuite.domain.errors import ValidationError

DateLike = Union[str, date, datetime, None]


def now_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat(sep=" ")


def to_iso(value: DateLike) -> str:
    """
    Normalize a datetime-ish value to the stored "YYYY-MM-DD HH:MM:SS" form.

    - None -> now
    - date -> midnight of that day
    - str  -> parsed with fromisoformat (accepts "T" or " " separator)
    """
    if value is None:
        return now_iso()
    if isinstance(value, datetime):
        return value.replace(microsecond=0, tzinfo=None).isoformat(sep=" ")
    if isinstance(value, date):
        return datetime.combine(value, time.min).isoformat(sep=" ")
    s = str(value).strip()
    if not s:
        return now_iso()
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc
    return to_iso(parsed)


def optional_iso(value: DateLike) -> Optional[str]:
    return None if value is None else to_iso(value)


def day_bounds(day: DateLike) -> tuple[str, str]:
    """[start, end) of the calendar day containing `day`."""
    if day is None:
        d = date.today()
    elif isinstance(day, datetime):
        d = day.date()
    elif isinstance(day, date):
        d = day
    else:
        d = datetime.fromisoformat(to_iso(day)).date()
    start = datetime.combine(d, time.min)
    return start.isoformat(sep=" "), (start + timedelta(days=1)).isoformat(sep=" ")


def document_number(prefix: str, when: Optional[datetime] = None) -> str:
    """POS/QUO/RET/PUR numbers: prefix + yymmdd + time down to milliseconds."""
    now = when or datetime.now()
    return f"{prefix}{now:%y%m%d%H%M%S}{now.microsecond // 1000:03d}"
