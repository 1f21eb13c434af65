# src/chatmemory/sessions/activity.py
"""
Session activity predicate.

Activity is derived from ``last_message_at`` on demand and never stored.
"""

from datetime import datetime, timedelta
from typing import Optional

from ..models import coerce_utc, utc_now


def is_active(last_message_at: datetime, stale_hours: float, now: Optional[datetime] = None) -> bool:
    """
    True if less than ``stale_hours`` have passed since ``last_message_at``.

    Naive datetimes are treated as UTC.
    """
    now = coerce_utc(now) if now is not None else utc_now()
    return now - coerce_utc(last_message_at) < timedelta(hours=stale_hours)
