"""Billing reports: summary, client breakdown, developer payments, allowance tracking."""

from shp_billing.reports.billing_reports import (
    AllowanceStatus,
    AllowanceTrackingItem,
    BillingSummary,
    ClientBreakdownItem,
    ClientRecord,
    ClientShare,
    DeveloperPayment,
    EntryRecord,
    allowance_tracking,
    client_breakdown,
    developer_payments,
    summarize_entries,
)
from shp_billing.reports.export import (
    allowance_frame,
    client_breakdown_frame,
    developer_payments_frame,
    summary_frame,
    write_csv,
)

__all__ = [
    "AllowanceStatus",
    "AllowanceTrackingItem",
    "BillingSummary",
    "ClientBreakdownItem",
    "ClientRecord",
    "ClientShare",
    "DeveloperPayment",
    "EntryRecord",
    "allowance_tracking",
    "client_breakdown",
    "developer_payments",
    "summarize_entries",
    "allowance_frame",
    "client_breakdown_frame",
    "developer_payments_frame",
    "summary_frame",
    "write_csv",
]
