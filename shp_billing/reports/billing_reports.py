"""Billing reports over stored time entries and clients.

This module aggregates already-billed entries into:
- An overall summary (hours, amounts, status breakdown, margin)
- A per-client breakdown
- Developer payments with a per-client split
- Allowance tracking per client

Reports only read; they never change billing fields or usage. The input
records are plain dataclasses so the reports can be built from ORM rows
(see ``EntryRecord.from_time_entry``) or from any other source.
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from shp_billing.calculators.allowance_calculator import ZERO, needs_year_reset
from shp_billing.calculators.time_utils import (
    minutes_to_hours,
    quantize_hours,
    quantize_money,
)
from shp_billing.models.billing import BillingStatus

HUNDRED = Decimal("100")

# Usage at or above this share of the allowance is flagged
WARNING_THRESHOLD_PERCENT = Decimal("80")


@dataclass
class EntryRecord:
    """A billed time entry flattened for reporting."""

    entry_id: str
    client_id: Optional[str]
    client_name: Optional[str]
    developer_id: Optional[str]
    developer_name: Optional[str]
    duration_minutes: int
    billable_amount: Decimal
    developer_amount: Decimal
    is_within_allowance: bool
    billing_status: BillingStatus
    developer_email: Optional[str] = None
    developer_rate: Optional[Decimal] = None

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.duration_minutes)

    @classmethod
    def from_time_entry(cls, entry) -> "EntryRecord":
        """Build a record from a ``TimeEntry`` row with task, client and developer."""
        client = entry.task.client if entry.task is not None else None
        developer = entry.developer
        return cls(
            entry_id=entry.id,
            client_id=client.id if client else None,
            client_name=client.domain_name if client else None,
            developer_id=developer.id if developer else None,
            developer_name=developer.name if developer else None,
            developer_email=developer.email if developer else None,
            developer_rate=developer.hourly_rate if developer else None,
            duration_minutes=entry.duration_minutes or 0,
            billable_amount=entry.billable_amount or ZERO,
            developer_amount=entry.developer_amount or ZERO,
            is_within_allowance=bool(entry.is_within_allowance),
            billing_status=entry.billing_status or BillingStatus.PENDING,
        )


@dataclass
class ClientRecord:
    """A client's allowance state flattened for reporting."""

    client_id: str
    client_name: str
    annual_hour_allowance: Decimal
    yearly_hours_used: Decimal
    last_year_reset: Optional[dt.datetime]

    @classmethod
    def from_client(cls, client) -> "ClientRecord":
        return cls(
            client_id=client.id,
            client_name=client.domain_name,
            annual_hour_allowance=client.annual_hour_allowance,
            yearly_hours_used=client.yearly_hours_used or ZERO,
            last_year_reset=client.last_year_reset,
        )


@dataclass
class BillingSummary:
    """Totals over a set of entries.

    Attributes:
        total_entries: Number of entries
        total_hours: All hours worked
        free_hours: Hours of entries fully covered by an allowance
        billable_hours: total_hours - free_hours
        total_billable_amount: Charged to clients
        total_developer_amount: Owed to developers
        average_hourly_rate: total_developer_amount / total_hours
        status_breakdown: Entry count per billing status
        profit_margin: total_billable_amount - total_developer_amount
    """

    total_entries: int
    total_hours: Decimal
    free_hours: Decimal
    billable_hours: Decimal
    total_billable_amount: Decimal
    total_developer_amount: Decimal
    average_hourly_rate: Decimal
    status_breakdown: Dict[BillingStatus, int]
    profit_margin: Decimal


@dataclass
class ClientBreakdownItem:
    """Totals for one client."""

    client_id: str
    client_name: str
    entry_count: int = 0
    total_hours: Decimal = ZERO
    free_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO
    total_billable_amount: Decimal = ZERO
    total_developer_amount: Decimal = ZERO


@dataclass
class ClientShare:
    """A developer's work for one client."""

    hours: Decimal = ZERO
    amount: Decimal = ZERO
    entries: int = 0


@dataclass
class DeveloperPayment:
    """What one developer is owed, split by client."""

    developer_id: str
    developer_name: str
    email: Optional[str] = None
    hourly_rate: Optional[Decimal] = None
    entry_count: int = 0
    total_hours: Decimal = ZERO
    total_amount: Decimal = ZERO
    client_breakdown: Dict[str, ClientShare] = field(default_factory=dict)


class AllowanceStatus(str, Enum):
    """Allowance consumption level of a client."""

    NEEDS_RESET = "NEEDS_RESET"
    EXCEEDED = "EXCEEDED"
    WARNING = "WARNING"
    NORMAL = "NORMAL"


@dataclass
class AllowanceTrackingItem:
    """Allowance consumption of one client in the current year."""

    client_id: str
    client_name: str
    annual_hour_allowance: Decimal
    yearly_hours_used: Decimal
    remaining_hours: Decimal
    usage_percentage: Decimal
    status: AllowanceStatus
    last_year_reset: Optional[dt.datetime]
    needs_year_reset: bool


def summarize_entries(entries: Iterable[EntryRecord]) -> BillingSummary:
    """Aggregate entries into a billing summary.

    Args:
        entries: Entries to summarize

    Returns:
        BillingSummary; all zeros for an empty input
    """
    entries = list(entries)

    total_minutes = sum((e.duration_minutes for e in entries), 0)
    free_minutes = sum((e.duration_minutes for e in entries if e.is_within_allowance), 0)
    total_billable = sum((e.billable_amount for e in entries), ZERO)
    total_developer = sum((e.developer_amount for e in entries), ZERO)

    total_hours = quantize_hours(minutes_to_hours(total_minutes))
    free_hours = quantize_hours(minutes_to_hours(free_minutes))

    if total_hours > 0:
        average_rate = quantize_money(total_developer / minutes_to_hours(total_minutes))
    else:
        average_rate = quantize_money(ZERO)

    status_breakdown = {status: 0 for status in BillingStatus}
    for entry in entries:
        status_breakdown[entry.billing_status] += 1

    return BillingSummary(
        total_entries=len(entries),
        total_hours=total_hours,
        free_hours=free_hours,
        billable_hours=total_hours - free_hours,
        total_billable_amount=quantize_money(total_billable),
        total_developer_amount=quantize_money(total_developer),
        average_hourly_rate=average_rate,
        status_breakdown=status_breakdown,
        profit_margin=quantize_money(total_billable - total_developer),
    )


def client_breakdown(entries: Iterable[EntryRecord]) -> List[ClientBreakdownItem]:
    """Group entries by client, highest billable amount first.

    Entries without a client are skipped.
    """
    by_client: Dict[str, ClientBreakdownItem] = {}

    for entry in entries:
        if entry.client_id is None:
            continue

        item = by_client.get(entry.client_id)
        if item is None:
            item = ClientBreakdownItem(
                client_id=entry.client_id, client_name=entry.client_name or ""
            )
            by_client[entry.client_id] = item

        hours = entry.hours
        item.entry_count += 1
        item.total_hours += hours
        item.total_billable_amount += entry.billable_amount
        item.total_developer_amount += entry.developer_amount
        if entry.is_within_allowance:
            item.free_hours += hours
        else:
            item.billable_hours += hours

    for item in by_client.values():
        item.total_hours = quantize_hours(item.total_hours)
        item.free_hours = quantize_hours(item.free_hours)
        item.billable_hours = quantize_hours(item.billable_hours)
        item.total_billable_amount = quantize_money(item.total_billable_amount)
        item.total_developer_amount = quantize_money(item.total_developer_amount)

    return sorted(
        by_client.values(), key=lambda item: item.total_billable_amount, reverse=True
    )


def developer_payments(entries: Iterable[EntryRecord]) -> List[DeveloperPayment]:
    """Group developer amounts by developer, highest amount first.

    Entries without a developer are skipped.
    """
    by_developer: Dict[str, DeveloperPayment] = {}

    for entry in entries:
        if entry.developer_id is None:
            continue

        payment = by_developer.get(entry.developer_id)
        if payment is None:
            payment = DeveloperPayment(
                developer_id=entry.developer_id,
                developer_name=entry.developer_name or "",
                email=entry.developer_email,
                hourly_rate=entry.developer_rate,
            )
            by_developer[entry.developer_id] = payment

        hours = entry.hours
        payment.entry_count += 1
        payment.total_hours += hours
        payment.total_amount += entry.developer_amount

        if entry.client_name is not None:
            share = payment.client_breakdown.setdefault(entry.client_name, ClientShare())
            share.hours += hours
            share.amount += entry.developer_amount
            share.entries += 1

    for payment in by_developer.values():
        payment.total_hours = quantize_hours(payment.total_hours)
        payment.total_amount = quantize_money(payment.total_amount)
        for share in payment.client_breakdown.values():
            share.hours = quantize_hours(share.hours)
            share.amount = quantize_money(share.amount)

    return sorted(
        by_developer.values(), key=lambda payment: payment.total_amount, reverse=True
    )


def _usage_percentage(used: Decimal, allowance: Decimal) -> Decimal:
    if allowance == 0:
        # Any use of a zero allowance counts as fully consumed
        return HUNDRED if used > 0 else ZERO
    return quantize_money(used / allowance * HUNDRED)


def allowance_tracking(
    clients: Iterable[ClientRecord], now: dt.datetime
) -> List[AllowanceTrackingItem]:
    """Report each client's allowance consumption, highest usage first.

    A counter from an earlier year reads as zero usage with status
    NEEDS_RESET, matching how the next logged entry will treat it.

    Args:
        clients: Clients to report on
        now: Current time, decides which counters are stale

    Returns:
        One AllowanceTrackingItem per client
    """
    items = []

    for client in clients:
        stale = needs_year_reset(client.last_year_reset, now)
        allowance = client.annual_hour_allowance
        used = ZERO if stale else client.yearly_hours_used
        percentage = ZERO if stale else _usage_percentage(used, allowance)

        if stale:
            status = AllowanceStatus.NEEDS_RESET
        elif percentage >= HUNDRED:
            status = AllowanceStatus.EXCEEDED
        elif percentage >= WARNING_THRESHOLD_PERCENT:
            status = AllowanceStatus.WARNING
        else:
            status = AllowanceStatus.NORMAL

        items.append(
            AllowanceTrackingItem(
                client_id=client.client_id,
                client_name=client.client_name,
                annual_hour_allowance=allowance,
                yearly_hours_used=used,
                remaining_hours=max(ZERO, allowance - used),
                usage_percentage=percentage,
                status=status,
                last_year_reset=client.last_year_reset,
                needs_year_reset=stale,
            )
        )

    return sorted(items, key=lambda item: item.usage_percentage, reverse=True)
