"""Report commands."""

import datetime as dt
from typing import Optional

import click

from shp_billing.cli.error_handlers import with_error_handling
from shp_billing.cli.utils.formatters import (
    format_hours,
    format_info,
    format_money,
    format_success,
    format_table,
)
from shp_billing.cli.utils.service import build_service, datetime_option
from shp_billing.reports.export import (
    allowance_frame,
    client_breakdown_frame,
    developer_payments_frame,
    summary_frame,
    write_csv,
)

_period_options = [
    click.option(
        "--start",
        default=None,
        callback=datetime_option,
        help="Period start (default: first day of this month)",
    ),
    click.option(
        "--end",
        default=None,
        callback=datetime_option,
        help="Period end (default: last day of this month)",
    ),
]


def period_options(func):
    for option in reversed(_period_options):
        func = option(func)
    return func


csv_option = click.option(
    "--csv",
    "csv_path",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Also write the report to this CSV file",
)


def export_csv(df, csv_path: Optional[str]) -> None:
    if csv_path is None:
        return
    path = write_csv(df, csv_path)
    click.echo(format_success(f"Wrote {len(df)} row(s) to {path}"))


@click.command(name="allowance-report")
@click.option("--client-id", default=None, help="Only this client")
@csv_option
@click.pass_context
def allowance_report(
    ctx: click.Context, client_id: Optional[str], csv_path: Optional[str]
):
    """Show allowance consumption per client.

    Example:
        shp-billing allowance-report --csv allowance.csv
    """
    with with_error_handling(ctx.obj["debug"]):
        items = build_service().allowance_report(client_id)
        export_csv(allowance_frame(items), csv_path)

        if not items:
            click.echo(format_info("No clients found."))
            return

        headers = ["Client", "Allowance", "Used", "Remaining", "Usage %", "Status"]
        rows = [
            [
                item.client_name,
                format_hours(item.annual_hour_allowance),
                format_hours(item.yearly_hours_used),
                format_hours(item.remaining_hours),
                f"{item.usage_percentage:.2f}",
                item.status.value,
            ]
            for item in items
        ]
        click.echo(format_table(headers, rows))


@click.command(name="billing-summary")
@period_options
@click.option("--client-id", default=None, help="Only entries of this client")
@click.option("--developer-id", default=None, help="Only entries of this developer")
@csv_option
@click.pass_context
def billing_summary(
    ctx: click.Context,
    start: Optional[dt.datetime],
    end: Optional[dt.datetime],
    client_id: Optional[str],
    developer_id: Optional[str],
    csv_path: Optional[str],
):
    """Summarize billing of entries started in a period.

    Example:
        shp-billing billing-summary --start 2025-01-01 --end 2025-12-31
    """
    with with_error_handling(ctx.obj["debug"]):
        summary = build_service().billing_summary(
            start, end, client_id=client_id, developer_id=developer_id
        )

        click.echo(f"Entries:           {summary.total_entries}")
        click.echo(f"Total hours:       {format_hours(summary.total_hours)}")
        click.echo(f"Free hours:        {format_hours(summary.free_hours)}")
        click.echo(f"Billable hours:    {format_hours(summary.billable_hours)}")
        click.echo(f"Billable amount:   {format_money(summary.total_billable_amount)}")
        click.echo(f"Developer amount:  {format_money(summary.total_developer_amount)}")
        click.echo(f"Average rate:      {format_money(summary.average_hourly_rate)}")
        click.echo(f"Margin:            {format_money(summary.profit_margin)}")

        breakdown = ", ".join(
            f"{status.value}={count}" for status, count in summary.status_breakdown.items()
        )
        click.echo(f"Statuses:          {breakdown}")
        export_csv(summary_frame(summary), csv_path)


@click.command(name="client-breakdown")
@period_options
@click.option("--client-id", default=None, help="Only this client")
@csv_option
@click.pass_context
def client_breakdown(
    ctx: click.Context,
    start: Optional[dt.datetime],
    end: Optional[dt.datetime],
    client_id: Optional[str],
    csv_path: Optional[str],
):
    """Show billing totals per client."""
    with with_error_handling(ctx.obj["debug"]):
        items = build_service().client_breakdown(start, end, client_id=client_id)
        export_csv(client_breakdown_frame(items), csv_path)

        if not items:
            click.echo(format_info("No entries in this period."))
            return

        headers = ["Client", "Entries", "Hours", "Free", "Billable", "Amount"]
        rows = [
            [
                item.client_name,
                item.entry_count,
                format_hours(item.total_hours),
                format_hours(item.free_hours),
                format_hours(item.billable_hours),
                format_money(item.total_billable_amount),
            ]
            for item in items
        ]
        click.echo(format_table(headers, rows))


@click.command(name="developer-payments")
@period_options
@click.option("--developer-id", default=None, help="Only this developer")
@csv_option
@click.pass_context
def developer_payments(
    ctx: click.Context,
    start: Optional[dt.datetime],
    end: Optional[dt.datetime],
    developer_id: Optional[str],
    csv_path: Optional[str],
):
    """Show what each developer is owed.

    With --csv, each developer gets one row per client worked for.
    """
    with with_error_handling(ctx.obj["debug"]):
        payments = build_service().developer_payments(
            start, end, developer_id=developer_id
        )
        export_csv(developer_payments_frame(payments), csv_path)

        if not payments:
            click.echo(format_info("No entries in this period."))
            return

        headers = ["Developer", "Entries", "Hours", "Amount"]
        rows = [
            [
                payment.developer_name,
                payment.entry_count,
                format_hours(payment.total_hours),
                format_money(payment.total_amount),
            ]
            for payment in payments
        ]
        click.echo(format_table(headers, rows))
