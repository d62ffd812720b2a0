"""Tabular export of billing reports.

Report rows are turned into pandas DataFrames with fixed column sets, so
an empty report still exports its header. Amounts and hours stay
``Decimal`` objects (object dtype) and are written exactly as stored.
"""

from pathlib import Path
from typing import Iterable, Union

import pandas as pd

from shp_billing.reports.billing_reports import (
    AllowanceTrackingItem,
    BillingSummary,
    ClientBreakdownItem,
    DeveloperPayment,
)

ALLOWANCE_COLUMNS = [
    "Client ID",
    "Client",
    "Allowance",
    "Used",
    "Remaining",
    "Usage %",
    "Status",
    "Last Reset",
]

CLIENT_BREAKDOWN_COLUMNS = [
    "Client ID",
    "Client",
    "Entries",
    "Hours",
    "Free Hours",
    "Billable Hours",
    "Billable Amount",
    "Developer Amount",
]

DEVELOPER_PAYMENT_COLUMNS = [
    "Developer ID",
    "Developer",
    "Email",
    "Client",
    "Entries",
    "Hours",
    "Amount",
]

SUMMARY_COLUMNS = ["Metric", "Value"]


def allowance_frame(items: Iterable[AllowanceTrackingItem]) -> pd.DataFrame:
    """One row per client."""
    rows = [
        [
            item.client_id,
            item.client_name,
            item.annual_hour_allowance,
            item.yearly_hours_used,
            item.remaining_hours,
            item.usage_percentage,
            item.status.value,
            item.last_year_reset,
        ]
        for item in items
    ]
    return pd.DataFrame(rows, columns=ALLOWANCE_COLUMNS)


def client_breakdown_frame(items: Iterable[ClientBreakdownItem]) -> pd.DataFrame:
    """One row per client."""
    rows = [
        [
            item.client_id,
            item.client_name,
            item.entry_count,
            item.total_hours,
            item.free_hours,
            item.billable_hours,
            item.total_billable_amount,
            item.total_developer_amount,
        ]
        for item in items
    ]
    return pd.DataFrame(rows, columns=CLIENT_BREAKDOWN_COLUMNS)


def developer_payments_frame(payments: Iterable[DeveloperPayment]) -> pd.DataFrame:
    """One row per developer and client.

    A developer whose entries carry no client gets a single row with an
    empty client and the developer totals.
    """
    rows = []
    for payment in payments:
        if not payment.client_breakdown:
            rows.append(
                [
                    payment.developer_id,
                    payment.developer_name,
                    payment.email,
                    None,
                    payment.entry_count,
                    payment.total_hours,
                    payment.total_amount,
                ]
            )
            continue

        for client_name, share in sorted(payment.client_breakdown.items()):
            rows.append(
                [
                    payment.developer_id,
                    payment.developer_name,
                    payment.email,
                    client_name,
                    share.entries,
                    share.hours,
                    share.amount,
                ]
            )
    return pd.DataFrame(rows, columns=DEVELOPER_PAYMENT_COLUMNS)


def summary_frame(summary: BillingSummary) -> pd.DataFrame:
    """Summary totals as metric/value pairs, statuses last."""
    rows = [
        ["Entries", summary.total_entries],
        ["Total Hours", summary.total_hours],
        ["Free Hours", summary.free_hours],
        ["Billable Hours", summary.billable_hours],
        ["Billable Amount", summary.total_billable_amount],
        ["Developer Amount", summary.total_developer_amount],
        ["Average Hourly Rate", summary.average_hourly_rate],
        ["Profit Margin", summary.profit_margin],
    ]
    rows.extend(
        [f"Status {status.value}", count]
        for status, count in summary.status_breakdown.items()
    )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def write_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write ``df`` to ``path`` without the index, creating parent folders.

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
