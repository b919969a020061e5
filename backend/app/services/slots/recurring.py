# backend/app/services/slots/recurring.py
"""
Recurring series expansion.

Monthly steps are calendar months counted from the base date, so a series
starting Jan 31 goes Jan 31 → Feb 28/29 → Mar 31 rather than drifting.
"""

import uuid
from datetime import datetime, timedelta
from enum import Enum

from dateutil.relativedelta import relativedelta


class Cadence(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


def expand_recurring(start: datetime, cadence: Cadence | str, count: int) -> list[datetime]:
    """
    Expand a base appointment into `count` start instants.

    cadence="none" always yields just the base instant.
    """
    cadence = Cadence(cadence)
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")

    if cadence == Cadence.NONE:
        return [start]
    if cadence == Cadence.WEEKLY:
        return [start + timedelta(days=7 * i) for i in range(count)]
    if cadence == Cadence.BIWEEKLY:
        return [start + timedelta(days=14 * i) for i in range(count)]
    return [start + relativedelta(months=i) for i in range(count)]


def new_series_id() -> str:
    return uuid.uuid4().hex
