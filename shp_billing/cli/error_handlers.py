"""Error handling for CLI commands."""

import sys
import traceback
from typing import Optional

import click
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from shp_billing.cli.utils.formatters import format_error, format_warning
from shp_billing.exceptions import (
    BillingError,
    ConcurrentUpdateConflict,
    InvalidInputError,
    NotFoundError,
    PartialRecalculationFailure,
)

# Exit codes per error type
EXIT_CONFIGURATION = 1
EXIT_BILLING = 2
EXIT_INVALID_INPUT = 3
EXIT_NOT_FOUND = 4
EXIT_CONFLICT = 5
EXIT_RECALCULATION = 6
EXIT_DATABASE = 7
EXIT_CANCELLED = 130
EXIT_UNEXPECTED = 255


class ConfigurationError(BillingError):
    """Error related to configuration issues."""

    pass


def _echo_billing_error(title: str, error: BillingError, hint: Optional[str] = None):
    click.echo(format_error(f"{title}: {error.message}"))
    hint = error.recovery_hint or hint
    if hint:
        click.echo(format_warning(f"Hint: {hint}"))


def handle_cli_error(error: Exception, debug: bool = False) -> int:
    """
    Handle CLI errors with user-friendly messages.

    Args:
        error: The exception that occurred
        debug: Whether to show full stack trace

    Returns:
        Exit code for the error type
    """
    if isinstance(error, ConfigurationError):
        _echo_billing_error("Configuration Error", error)
        return EXIT_CONFIGURATION

    elif isinstance(error, ValidationError):
        click.echo(format_error("Configuration Error: invalid settings"))
        for issue in error.errors():
            location = ".".join(str(part) for part in issue["loc"])
            click.echo(f"  {location}: {issue['msg']}")
        click.echo(format_warning("Hint: Check your environment variables or .env file"))
        return EXIT_CONFIGURATION

    elif isinstance(error, InvalidInputError):
        _echo_billing_error("Invalid Input", error)
        if error.report is not None and debug:
            click.echo(error.report.format())
        return EXIT_INVALID_INPUT

    elif isinstance(error, NotFoundError):
        _echo_billing_error("Not Found", error, hint="Check the id you passed")
        return EXIT_NOT_FOUND

    elif isinstance(error, ConcurrentUpdateConflict):
        _echo_billing_error("Conflict", error)
        return EXIT_CONFLICT

    elif isinstance(error, PartialRecalculationFailure):
        _echo_billing_error("Recalculation Failed", error)
        return EXIT_RECALCULATION

    elif isinstance(error, BillingError):
        _echo_billing_error("Billing Error", error)
        return EXIT_BILLING

    elif isinstance(error, SQLAlchemyError):
        click.echo(format_error(f"Database Error: {type(error).__name__}"))
        click.echo(format_warning("Hint: Check DATABASE_URL and run 'init-db' first"))
        if debug:
            click.echo(str(error))
        return EXIT_DATABASE

    # Handle click.Abort (user cancellation)
    elif isinstance(error, click.Abort):
        click.echo(format_warning("\nOperation cancelled by user"))
        return EXIT_CANCELLED  # Standard exit code for SIGINT

    else:
        click.echo(format_error(f"Unexpected Error: {type(error).__name__}"))
        click.echo(str(error))

        if debug:
            click.echo("\nFull stack trace:")
            click.echo(traceback.format_exc())
        else:
            click.echo(format_warning("\nRun with --debug flag for full stack trace"))

        return EXIT_UNEXPECTED


def with_error_handling(debug: bool = False):
    """
    Context manager adding standardized error handling to CLI commands.

    Args:
        debug: Whether to show full stack traces

    Example:
        @click.command()
        @click.pass_context
        def my_command(ctx):
            with with_error_handling(ctx.obj["debug"]):
                # Command implementation
                pass
    """

    class ErrorHandler:
        """Context manager for error handling."""

        def __init__(self, show_debug: bool):
            self.show_debug = show_debug

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            # Usage errors and explicit exits are click's own business
            if exc_val is not None and not isinstance(
                exc_val, (click.exceptions.Exit, click.ClickException)
            ):
                exit_code = handle_cli_error(exc_val, self.show_debug)
                sys.exit(exit_code)
            return False  # Don't suppress exceptions

    return ErrorHandler(debug)
