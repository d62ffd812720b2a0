"""Time logging commands: log-time, stop-timer."""

import datetime as dt
from decimal import Decimal
from typing import Optional

import click

from shp_billing.cli.error_handlers import with_error_handling
from shp_billing.cli.utils.formatters import (
    format_hours,
    format_info,
    format_money,
    format_success,
    format_warning,
)
from shp_billing.cli.utils.service import DECIMAL, build_service, datetime_option
from shp_billing.services.billing_service import TimeEntryResult
from shp_billing.validators.entry_validators import parse_time_entry


def _echo_entry_result(result: TimeEntryResult):
    billing = result.billing
    click.echo(format_info(f"Entry ID: {result.entry_id}"))
    click.echo(f"  Duration:          {result.duration_minutes} min")
    click.echo(f"  Hourly rate:       {format_money(result.hourly_rate)}")
    click.echo(f"  Free hours:        {format_hours(billing.free_hours)}")
    click.echo(f"  Billable hours:    {format_hours(billing.billable_hours)}")
    click.echo(f"  Billable amount:   {format_money(billing.billable_amount)}")
    click.echo(f"  Developer amount:  {format_money(billing.developer_amount)}")
    click.echo(f"  Within allowance:  {'yes' if billing.is_within_allowance else 'no'}")
    click.echo(f"  Client hours used: {format_hours(result.yearly_hours_used)}")
    if result.year_reset_applied:
        click.echo(format_warning("New calendar year: client usage was reset"))


@click.command(name="log-time")
@click.option("--task-id", required=True, help="Task the work belongs to")
@click.option(
    "--start",
    required=True,
    callback=datetime_option,
    help="Start time (YYYY-MM-DDTHH:MM, UTC)",
)
@click.option(
    "--end", default=None, callback=datetime_option, help="End time (YYYY-MM-DDTHH:MM, UTC)"
)
@click.option(
    "--minutes",
    type=int,
    default=None,
    help="Duration in minutes (overrides --end for billing)",
)
@click.option("--rate", type=DECIMAL, default=None, help="Hourly rate for this entry")
@click.option("--developer-id", default=None, help="Developer who did the work")
@click.option("--description", default=None, help="What was done")
@click.pass_context
def log_time(
    ctx: click.Context,
    task_id: str,
    start: dt.datetime,
    end: Optional[dt.datetime],
    minutes: Optional[int],
    rate: Optional[Decimal],
    developer_id: Optional[str],
    description: Optional[str],
):
    """Log work on a task and bill it against the client's allowance.

    Without --end and --minutes a running timer is started; stop it with
    'stop-timer'.

    Example:
        shp-billing log-time --task-id <id> --start 2025-03-03T09:00 --minutes 90
    """
    with with_error_handling(ctx.obj["debug"]):
        entry_input = parse_time_entry(
            task_id=task_id,
            start_time=start,
            end_time=end,
            duration_minutes=minutes,
            hourly_rate=rate,
            developer_id=developer_id,
            description=description,
        )
        result = build_service().log_time(entry_input)

        if result.is_active_timer:
            click.echo(format_success("Timer started"))
            click.echo(format_info(f"Entry ID: {result.entry_id}"))
            return

        click.echo(format_success("Time logged"))
        _echo_entry_result(result)


@click.command(name="stop-timer")
@click.option(
    "--entry-id",
    default=None,
    help="Timer to stop (default: the most recently started one)",
)
@click.pass_context
def stop_timer(ctx: click.Context, entry_id: Optional[str]):
    """Stop a running timer and bill it.

    Example:
        shp-billing stop-timer
    """
    with with_error_handling(ctx.obj["debug"]):
        result = build_service().stop_timer(entry_id)
        click.echo(format_success("Timer stopped"))
        _echo_entry_result(result)
