"""Time and quantity utilities for the billing engine.

This module provides low-level helpers for:
- Deriving a duration in whole minutes from start and end timestamps
- Converting minutes to decimal hours
- Quantizing hours and money the same way everywhere
- Calendar-year boundaries used by the yearly reset

Timestamps are naive UTC datetimes throughout the engine.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal

MINUTES_PER_HOUR = Decimal("60")

# Hours are kept to 1/10000 h (0.36 s); money to cents
HOURS_QUANTUM = Decimal("0.0001")
MONEY_QUANTUM = Decimal("0.01")


def utc_now() -> dt.datetime:
    """Return the current time as a naive UTC datetime."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def calculate_duration_minutes(start_time: dt.datetime, end_time: dt.datetime) -> int:
    """Calculate the duration between two timestamps in whole minutes.

    Half minutes round up, so 90 seconds count as 2 minutes.

    Args:
        start_time: Work start
        end_time: Work end

    Returns:
        Duration in minutes (negative if end precedes start)

    Example:
        >>> calculate_duration_minutes(
        ...     dt.datetime(2025, 3, 3, 9, 0), dt.datetime(2025, 3, 3, 10, 30)
        ... )
        90
    """
    seconds = Decimal(str((end_time - start_time).total_seconds()))
    minutes = (seconds / Decimal("60")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minutes)


def minutes_to_hours(minutes: int) -> Decimal:
    """Convert minutes to decimal hours without rounding.

    Example:
        >>> minutes_to_hours(90)
        Decimal('1.5')
    """
    return Decimal(minutes) / MINUTES_PER_HOUR


def quantize_hours(hours: Decimal) -> Decimal:
    """Round hours to the engine's hour precision.

    Example:
        >>> quantize_hours(Decimal(20) / Decimal(60))
        Decimal('0.3333')
    """
    return hours.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_money(amount: Decimal) -> Decimal:
    """Round a monetary amount to cents (ROUND_HALF_UP).

    Example:
        >>> quantize_money(Decimal("1.255"))
        Decimal('1.26')
    """
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def start_of_year(year: int) -> dt.datetime:
    """Return midnight on January 1st of ``year``."""
    return dt.datetime(year, 1, 1)
