"""Allowance maintenance commands: recalculate, reset-year, update-allowance."""

from decimal import Decimal
from typing import Optional

import click

from shp_billing.cli.error_handlers import with_error_handling
from shp_billing.cli.utils.formatters import (
    format_error,
    format_hours,
    format_info,
    format_success,
    format_table,
)
from shp_billing.cli.utils.service import DECIMAL, build_service


def _require_one_target(client_id: Optional[str], all_clients: bool):
    if bool(client_id) == all_clients:
        raise click.UsageError("Pass exactly one of --client-id or --all")


@click.command(name="recalculate")
@click.option("--client-id", default=None, help="Client to recalculate")
@click.option("--all", "all_clients", is_flag=True, help="Recalculate every client")
@click.pass_context
def recalculate(ctx: click.Context, client_id: Optional[str], all_clients: bool):
    """Rebuild billing fields of a client's entries from scratch.

    Example:
        shp-billing recalculate --client-id <id>
        shp-billing recalculate --all
    """
    _require_one_target(client_id, all_clients)

    with with_error_handling(ctx.obj["debug"]):
        service = build_service()

        if client_id:
            summary = service.recalculate(client_id)
            click.echo(
                format_success(f"Recalculated {summary.entries_processed} entries")
            )
            click.echo(f"  Total hours:    {format_hours(summary.total_hours)}")
            click.echo(f"  Free hours:     {format_hours(summary.free_hours)}")
            click.echo(f"  Billable hours: {format_hours(summary.billable_hours)}")
            return

        bulk = service.recalculate_all()
        rows = [
            [
                summary.client_id,
                summary.entries_processed,
                format_hours(summary.total_hours),
                format_hours(summary.billable_hours),
            ]
            for summary in bulk.results.values()
        ]
        if rows:
            click.echo(
                format_table(["Client", "Entries", "Total", "Billable"], rows)
            )
        click.echo(format_success(f"Recalculated {bulk.succeeded} client(s)"))

        for failed_id, error in bulk.failures.items():
            click.echo(format_error(f"{failed_id}: {error}"))
        if bulk.failures:
            ctx.exit(6)


@click.command(name="reset-year")
@click.option("--client-id", default=None, help="Client to reset")
@click.option(
    "--all",
    "all_clients",
    is_flag=True,
    help="Reset every client not yet reset for the year",
)
@click.option("--year", type=int, default=None, help="Target year (default: current)")
@click.pass_context
def reset_year(
    ctx: click.Context,
    client_id: Optional[str],
    all_clients: bool,
    year: Optional[int],
):
    """Zero the yearly hours counter.

    Example:
        shp-billing reset-year --all --year 2026
    """
    _require_one_target(client_id, all_clients)

    with with_error_handling(ctx.obj["debug"]):
        service = build_service()
        if client_id:
            result = service.reset_year(client_id, target_year=year)
        else:
            result = service.bulk_reset_year(target_year=year)

        click.echo(
            format_success(
                f"Reset {result.count} client(s) to {result.reset_date.date()}"
            )
        )


@click.command(name="update-allowance")
@click.option("--client-id", required=True, help="Client to update")
@click.option("--hours", type=DECIMAL, required=True, help="New annual hour allowance")
@click.pass_context
def update_allowance(ctx: click.Context, client_id: str, hours: Decimal):
    """Change a client's annual hour allowance.

    Entries are recalculated when the client has already used hours.

    Example:
        shp-billing update-allowance --client-id <id> --hours 5
    """
    with with_error_handling(ctx.obj["debug"]):
        result = build_service().update_allowance(client_id, hours)
        click.echo(
            format_success(
                f"Allowance changed from {format_hours(result.previous_allowance)} "
                f"to {format_hours(result.new_allowance)}"
            )
        )
        if result.recalculation:
            click.echo(
                format_info(
                    f"Recalculated {result.recalculation.entries_processed} entries"
                )
            )
