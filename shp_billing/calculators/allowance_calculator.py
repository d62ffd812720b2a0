"""Annual hour allowance engine.

This module splits logged time into a free part, covered by the client's
annual hour allowance, and a billable part, and keeps the client's yearly
usage counter:

- ``evaluate_entry``: billing fields of one new entry (pure)
- ``apply_usage``: the client's usage after that entry is stored (pure)
- ``recalculate_entries``: rebuild billing fields for a client's history
- ``resolve_hourly_rate``: entry rate, else developer rate, else default

Formula for one entry:
    remaining = max(0, allowance - used_this_year)
    free      = min(hours, remaining)
    billable  = max(0, hours - free)
    client pays billable × rate, developer earns hours × rate
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from shp_billing.calculators.time_utils import (
    minutes_to_hours,
    quantize_hours,
    quantize_money,
)
from shp_billing.exceptions import InvalidInputError
from shp_billing.models.billing import BillingStatus, ClientUsage

ZERO = Decimal("0")


@dataclass
class EntryBilling:
    """Billing fields of a single time entry.

    Attributes:
        billing_status: Always PENDING when computed by the engine
        billable_amount: Charged to the client for the non-allowance hours
        developer_amount: Owed to the developer for all hours worked
        is_within_allowance: True iff nothing is billable
        free_hours: Hours covered by the allowance
        billable_hours: Hours charged to the client

    Example:
        >>> billing = evaluate_entry(usage, 90, Decimal("75"), now)
        >>> billing.developer_amount
        Decimal('112.50')
    """

    billing_status: BillingStatus
    billable_amount: Decimal
    developer_amount: Decimal
    is_within_allowance: bool
    free_hours: Decimal
    billable_hours: Decimal


@dataclass
class RecalculationInput:
    """One stored time entry as seen by ``recalculate_entries``."""

    entry_id: str
    start_time: dt.datetime
    duration_minutes: Optional[int]
    hourly_rate: Decimal
    created_at: Optional[dt.datetime] = None


@dataclass
class RecalculatedEntry:
    """Billing fields recomputed for one stored entry."""

    entry_id: str
    billing: EntryBilling


@dataclass
class RecalculationResult:
    """Outcome of rebuilding a client's billing history.

    Attributes:
        entries: Recomputed billing per entry, in chronological order
        total_hours: Sum of all entry hours (the client's new yearly usage)
        free_hours: Hours covered by the allowance
        billable_hours: Hours beyond the allowance
    """

    entries: List[RecalculatedEntry] = field(default_factory=list)
    total_hours: Decimal = ZERO
    free_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO


def _check_non_negative(duration_minutes: int, hourly_rate: Decimal) -> None:
    if duration_minutes is None or duration_minutes < 0:
        raise InvalidInputError(
            f"Duration must be a non-negative number of minutes, got {duration_minutes}"
        )
    if hourly_rate is None or hourly_rate < 0:
        raise InvalidInputError(f"Hourly rate cannot be negative, got {hourly_rate}")


def needs_year_reset(last_year_reset: Optional[dt.datetime], now: dt.datetime) -> bool:
    """Check whether a usage counter belongs to an earlier calendar year.

    Args:
        last_year_reset: When the counter was last reset (None if never)
        now: Current time

    Returns:
        True if the counter must be treated as zero
    """
    return last_year_reset is None or last_year_reset.year < now.year


def effective_hours_used(client: ClientUsage, now: dt.datetime) -> Decimal:
    """Return the client's usage for the current calendar year."""
    if needs_year_reset(client.last_year_reset, now):
        return ZERO
    return client.yearly_hours_used


def _split_hours(
    duration_minutes: int, hourly_rate: Decimal, remaining_free_hours: Decimal
) -> EntryBilling:
    duration_hours = minutes_to_hours(duration_minutes)
    free_hours = min(duration_hours, remaining_free_hours)
    billable_hours = max(ZERO, duration_hours - free_hours)

    # Decide on the rounded value so sub-second noise never bills a client
    is_within_allowance = quantize_hours(billable_hours) == ZERO
    if is_within_allowance:
        billable_amount = quantize_money(ZERO)
    else:
        billable_amount = quantize_money(billable_hours * hourly_rate)

    return EntryBilling(
        billing_status=BillingStatus.PENDING,
        billable_amount=billable_amount,
        developer_amount=quantize_money(duration_hours * hourly_rate),
        is_within_allowance=is_within_allowance,
        free_hours=quantize_hours(free_hours),
        billable_hours=quantize_hours(billable_hours),
    )


def evaluate_entry(
    client: ClientUsage,
    duration_minutes: int,
    hourly_rate: Decimal,
    now: dt.datetime,
) -> EntryBilling:
    """Compute the billing fields of a new time entry.

    The split depends only on the client's allowance state as passed in.
    Callers must hold the client's usage lock between reading that state
    and storing the result of ``apply_usage``.

    Args:
        client: Allowance snapshot of the entry's client
        duration_minutes: Minutes worked (>= 0)
        hourly_rate: Effective hourly rate (>= 0)
        now: Current time, used for the calendar-year check

    Returns:
        EntryBilling for the entry

    Raises:
        InvalidInputError: If duration or rate is negative

    Example:
        >>> usage = ClientUsage(
        ...     annual_hour_allowance=Decimal("10"),
        ...     yearly_hours_used=Decimal("9"),
        ...     last_year_reset=dt.datetime(2025, 1, 1),
        ... )
        >>> billing = evaluate_entry(
        ...     usage, 120, Decimal("75"), dt.datetime(2025, 6, 1)
        ... )
        >>> billing.billable_amount
        Decimal('75.00')
    """
    _check_non_negative(duration_minutes, hourly_rate)

    current_yearly_hours = effective_hours_used(client, now)
    remaining_free_hours = max(ZERO, client.annual_hour_allowance - current_yearly_hours)

    return _split_hours(duration_minutes, hourly_rate, remaining_free_hours)


def apply_usage(
    client: ClientUsage, duration_minutes: int, now: dt.datetime
) -> ClientUsage:
    """Compute the client's usage after a new entry has been stored.

    When the stored counter belongs to an earlier year it is discarded and
    the new year starts from this entry alone; ``last_year_reset`` becomes
    ``now``. Otherwise the entry's hours are added and the reset timestamp
    is left untouched.

    Args:
        client: Allowance snapshot the entry was evaluated against
        duration_minutes: Minutes worked (>= 0)
        now: Current time

    Returns:
        New ClientUsage to persist
    """
    if duration_minutes is None or duration_minutes < 0:
        raise InvalidInputError(
            f"Duration must be a non-negative number of minutes, got {duration_minutes}"
        )

    duration_hours = minutes_to_hours(duration_minutes)

    if needs_year_reset(client.last_year_reset, now):
        return client.model_copy(
            update={
                "yearly_hours_used": quantize_hours(duration_hours),
                "last_year_reset": now,
            }
        )

    return client.model_copy(
        update={
            "yearly_hours_used": quantize_hours(
                client.yearly_hours_used + duration_hours
            )
        }
    )


def _chronological_key(entry: RecalculationInput):
    return (entry.start_time, entry.created_at or dt.datetime.min, entry.entry_id)


def recalculate_entries(
    annual_hour_allowance: Decimal, entries: Iterable[RecalculationInput]
) -> RecalculationResult:
    """Rebuild billing fields for all of a client's entries.

    Entries are processed by ``start_time`` ascending, so the earliest work
    absorbs the free hours first. The pass starts from zero usage and
    treats the whole set as one allowance pool: calendar-year boundaries
    inside the set are not reset. Entries without a duration count as zero.

    Args:
        annual_hour_allowance: The client's allowance
        entries: The client's stored entries, in any order

    Returns:
        RecalculationResult with per-entry billing and totals

    Raises:
        InvalidInputError: If the allowance, a duration or a rate is negative
    """
    if annual_hour_allowance is None or annual_hour_allowance < 0:
        raise InvalidInputError(
            f"Annual hour allowance cannot be negative, got {annual_hour_allowance}"
        )

    result = RecalculationResult()
    cumulative_hours = ZERO

    for entry in sorted(entries, key=_chronological_key):
        duration_minutes = entry.duration_minutes or 0
        _check_non_negative(duration_minutes, entry.hourly_rate)

        remaining_free_hours = max(ZERO, annual_hour_allowance - cumulative_hours)
        billing = _split_hours(duration_minutes, entry.hourly_rate, remaining_free_hours)
        result.entries.append(RecalculatedEntry(entry_id=entry.entry_id, billing=billing))

        # Same rounding as apply_usage, so a rebuild matches sequential logging
        cumulative_hours = quantize_hours(
            cumulative_hours + minutes_to_hours(duration_minutes)
        )

    result.total_hours = cumulative_hours
    result.free_hours = min(cumulative_hours, annual_hour_allowance)
    result.billable_hours = max(ZERO, cumulative_hours - annual_hour_allowance)
    return result


def resolve_hourly_rate(
    entry_rate: Optional[Decimal],
    developer_rate: Optional[Decimal],
    default_rate: Decimal,
) -> Decimal:
    """Pick the rate for an entry: its own, else the developer's, else default.

    Example:
        >>> resolve_hourly_rate(None, Decimal("90"), Decimal("75"))
        Decimal('90')
    """
    if entry_rate is not None:
        return Decimal(entry_rate)
    if developer_rate is not None:
        return Decimal(developer_rate)
    return Decimal(default_rate)
