"""SHP Billing CLI.

This module provides a command-line interface for the billing engine.
It includes commands for setting up the database, logging time, maintaining
client allowances and printing billing reports.
"""

import click

from shp_billing import __version__
from shp_billing.cli.commands import (
    add_client,
    add_developer,
    add_task,
    allowance_report,
    billing_summary,
    client_breakdown,
    developer_payments,
    init_db,
    log_time,
    recalculate,
    reset_year,
    stop_timer,
    update_allowance,
)
from shp_billing.cli.error_handlers import with_error_handling
from shp_billing.config.logging_config import LoggingConfig, configure_logging
from shp_billing.config.settings import get_config


@click.group(help="SHP Billing - time entry billing and annual hour allowances")
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Show full stack traces on errors")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """SHP Billing CLI main entry point."""
    ctx.ensure_object(dict)

    with with_error_handling(debug):
        settings = get_config()
        ctx.obj["debug"] = debug or settings.debug
        configure_logging(LoggingConfig.from_settings(settings))


# Register commands
cli.add_command(init_db)
cli.add_command(add_client)
cli.add_command(add_task)
cli.add_command(add_developer)
cli.add_command(log_time)
cli.add_command(stop_timer)
cli.add_command(recalculate)
cli.add_command(reset_year)
cli.add_command(update_allowance)
cli.add_command(allowance_report)
cli.add_command(billing_summary)
cli.add_command(client_breakdown)
cli.add_command(developer_payments)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
