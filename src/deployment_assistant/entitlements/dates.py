"""Date coercion for loosely formatted payload fields."""

from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

_FALLBACK_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%d-%b-%Y")


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a payload date value to a ``date``.

    Accepts ``date``/``datetime`` objects, ISO-8601 dates and timestamps
    (``2025-06-01``, ``2025-06-01T00:00:00.000Z``) and a few US-style formats.
    Empty values return None. Anything else raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"not a date: {value!r}")

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"not a date: {value!r}")


def as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def window_days(window: Union[int, timedelta]) -> int:
    """Normalize a lookahead window to whole days."""
    if isinstance(window, timedelta):
        days = window.days
    else:
        days = int(window)
    if days < 0:
        raise ValueError("window must not be negative")
    return days
