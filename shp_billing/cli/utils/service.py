"""Wiring of configuration, database and BillingService for CLI commands."""

import datetime as dt
from decimal import Decimal

import click

from shp_billing.config.settings import get_config
from shp_billing.db.engine import get_session_factory, init_engine_from_url
from shp_billing.services.billing_service import BillingService


def build_service() -> BillingService:
    """Create a BillingService on the configured database."""
    settings = get_config()
    init_engine_from_url(settings.database_url, echo=settings.database_echo)
    return BillingService(get_session_factory(), config=settings)


def parse_datetime(value: str) -> dt.datetime:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM-DDTHH:MM[:SS]`` into a naive datetime.

    Raises:
        click.BadParameter: If the value matches neither format
    """
    for fmt in ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return dt.datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise click.BadParameter(
        f"Invalid date/time: {value}. Expected YYYY-MM-DD or YYYY-MM-DDTHH:MM"
    )


def datetime_option(ctx, param, value):
    """Click callback turning an optional date/time string into a datetime."""
    if value is None:
        return None
    return parse_datetime(value)


class DecimalType(click.ParamType):
    """Click parameter type for exact decimal amounts and hours."""

    name = "decimal"

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal) and value.is_finite():
            return value
        try:
            number = Decimal(str(value).strip())
        except ArithmeticError:
            self.fail(f"{value!r} is not a valid number", param, ctx)
        if not number.is_finite():
            self.fail(f"{value!r} is not a finite number", param, ctx)
        return number


DECIMAL = DecimalType()
