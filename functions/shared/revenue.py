"""
Revenue summary over Stripe PaymentIntents.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from shared.errors import ValidationError

SUCCEEDED = "succeeded"

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


@dataclass(frozen=True)
class Timeframe:
    start: int
    end: int


def get_timeframe(months_ago: int, now: datetime | None = None) -> Timeframe:
    """Window from 00:00 UTC on the first day of the month ``months_ago``
    months before ``now`` through ``now``, as unix timestamps.

    Raises:
        ValidationError: the window would start before year 1
    """
    end_time = now or datetime.now(timezone.utc)

    month_index = end_time.year * 12 + (end_time.month - 1) - months_ago
    if month_index < 12:
        raise ValidationError(f"monthsAgo {months_ago} reaches before year 1")
    start_time = datetime(month_index // 12, month_index % 12 + 1, 1, tzinfo=timezone.utc)

    return Timeframe(start=int(start_time.timestamp()), end=int(end_time.timestamp()))


def summarize_revenue(payments: Iterable) -> dict[str, dict[str, int]]:
    """Sum succeeded payment amounts by year, then by month name.

    Each payment must support item access for ``created``, ``status`` and
    ``amount`` (Stripe objects and plain dicts both do).
    """
    revenue: dict[str, dict[str, int]] = {}

    for payment in payments:
        if payment["status"] != SUCCEEDED:
            continue

        created = datetime.fromtimestamp(payment["created"], tz=timezone.utc)
        year = str(created.year)
        month = MONTH_NAMES[created.month - 1]

        months = revenue.setdefault(year, {})
        months[month] = months.get(month, 0) + int(payment["amount"])

    return revenue
