"""CLI utility functions."""

from shp_billing.cli.utils.formatters import (
    format_error,
    format_hours,
    format_info,
    format_money,
    format_success,
    format_table,
    format_warning,
)
from shp_billing.cli.utils.service import (
    DECIMAL,
    build_service,
    datetime_option,
    parse_datetime,
)

__all__ = [
    "DECIMAL",
    "build_service",
    "datetime_option",
    "format_error",
    "format_hours",
    "format_info",
    "format_money",
    "format_success",
    "format_table",
    "format_warning",
    "parse_datetime",
]
