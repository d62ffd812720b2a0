"""Validation layer for billing inputs."""

from shp_billing.validators.entry_validators import (
    EntryValidators,
    parse_time_entry,
    raise_for_errors,
)
from shp_billing.validators.validation_report import (
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
)

__all__ = [
    "EntryValidators",
    "ValidationIssue",
    "ValidationReport",
    "ValidationSeverity",
    "parse_time_entry",
    "raise_for_errors",
]
