"""Database setup commands: init-db, add-client, add-task, add-developer."""

from decimal import Decimal
from typing import Optional

import click

from shp_billing.cli.error_handlers import with_error_handling
from shp_billing.cli.utils.formatters import format_info, format_success
from shp_billing.cli.utils.service import DECIMAL, build_service
from shp_billing.config.settings import get_config
from shp_billing.db.engine import create_tables, get_engine
from shp_billing.utils.logging_utils import redact_database_url


@click.command(name="init-db")
@click.pass_context
def init_db(ctx: click.Context):
    """Create the database tables.

    Example:
        shp-billing init-db
    """
    with with_error_handling(ctx.obj["debug"]):
        build_service()
        create_tables(get_engine())
        url = redact_database_url(get_config().database_url)
        click.echo(format_success(f"Database initialized at {url}"))


@click.command(name="add-client")
@click.argument("domain_name")
@click.option(
    "--allowance",
    type=DECIMAL,
    default=None,
    help="Annual hour allowance (default: DEFAULT_ANNUAL_HOUR_ALLOWANCE)",
)
@click.option("--notes", type=str, default=None, help="Free text notes")
@click.pass_context
def add_client(
    ctx: click.Context,
    domain_name: str,
    allowance: Optional[Decimal],
    notes: Optional[str],
):
    """Create a client.

    Example:
        shp-billing add-client example.com --allowance 10
    """
    with with_error_handling(ctx.obj["debug"]):
        client = build_service().create_client(
            domain_name, annual_hour_allowance=allowance, notes=notes
        )
        click.echo(format_success(f"Created client {client.domain_name}"))
        click.echo(format_info(f"Client ID: {client.id}"))


@click.command(name="add-task")
@click.option("--client-id", required=True, help="Client the task belongs to")
@click.argument("title")
@click.pass_context
def add_task(ctx: click.Context, client_id: str, title: str):
    """Create a task for a client.

    Example:
        shp-billing add-task --client-id <id> "Renew certificates"
    """
    with with_error_handling(ctx.obj["debug"]):
        task = build_service().create_task(client_id, title)
        click.echo(format_success(f"Created task {task.title}"))
        click.echo(format_info(f"Task ID: {task.id}"))


@click.command(name="add-developer")
@click.argument("name")
@click.option("--email", type=str, default=None, help="Email address")
@click.option("--rate", type=DECIMAL, default=None, help="Default hourly rate")
@click.pass_context
def add_developer(
    ctx: click.Context, name: str, email: Optional[str], rate: Optional[Decimal]
):
    """Create a developer.

    Example:
        shp-billing add-developer "Jane Roe" --rate 90
    """
    with with_error_handling(ctx.obj["debug"]):
        developer = build_service().create_developer(name, email=email, hourly_rate=rate)
        click.echo(format_success(f"Created developer {developer.name}"))
        click.echo(format_info(f"Developer ID: {developer.id}"))
