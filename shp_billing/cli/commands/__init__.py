"""CLI commands."""

from shp_billing.cli.commands.allowance import recalculate, reset_year, update_allowance
from shp_billing.cli.commands.reports import (
    allowance_report,
    billing_summary,
    client_breakdown,
    developer_payments,
)
from shp_billing.cli.commands.setup import add_client, add_developer, add_task, init_db
from shp_billing.cli.commands.time_entries import log_time, stop_timer

__all__ = [
    "add_client",
    "add_developer",
    "add_task",
    "allowance_report",
    "billing_summary",
    "client_breakdown",
    "developer_payments",
    "init_db",
    "log_time",
    "recalculate",
    "reset_year",
    "stop_timer",
    "update_allowance",
]
