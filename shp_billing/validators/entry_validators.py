"""Input validators for billing operations.

Every check runs before the service touches the database, so a rejected
request never mutates client usage or time entries.
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from shp_billing.calculators.time_utils import calculate_duration_minutes
from shp_billing.exceptions import InvalidInputError
from shp_billing.models.billing import TimeEntryInput
from shp_billing.validators.validation_report import ValidationReport

logger = logging.getLogger(__name__)

# Entries longer than a day are accepted but flagged
MAX_EXPECTED_MINUTES = 24 * 60


class EntryValidators:
    """Collection of validation methods for billing inputs."""

    @staticmethod
    def validate_time_entry(entry: TimeEntryInput) -> ValidationReport:
        """Validate a time entry before it is billed.

        Checks:
        - duration_minutes is not negative
        - end_time is not before start_time
        - hourly_rate is a finite, non-negative number
        - an explicit duration roughly agrees with start/end (warning)
        - the entry is not longer than a day (warning)

        Args:
            entry: The submitted time entry

        Returns:
            ValidationReport with all issues found
        """
        report = ValidationReport()
        context = {"task_id": entry.task_id}

        if entry.duration_minutes is not None and entry.duration_minutes < 0:
            report.add_error(
                "duration_minutes",
                "Duration cannot be negative",
                entry.duration_minutes,
                context,
            )

        derived_minutes: Optional[int] = None
        if entry.end_time is not None:
            if entry.end_time < entry.start_time:
                report.add_error(
                    "end_time",
                    f"End time ({entry.end_time}) must not be before start time "
                    f"({entry.start_time})",
                    entry.end_time,
                    context,
                )
            else:
                derived_minutes = calculate_duration_minutes(
                    entry.start_time, entry.end_time
                )

        if entry.hourly_rate is not None:
            if not entry.hourly_rate.is_finite():
                report.add_error(
                    "hourly_rate",
                    "Hourly rate must be a finite number",
                    entry.hourly_rate,
                    context,
                )
            elif entry.hourly_rate < 0:
                report.add_error(
                    "hourly_rate", "Hourly rate cannot be negative", entry.hourly_rate, context
                )

        if (
            derived_minutes is not None
            and entry.duration_minutes is not None
            and entry.duration_minutes > 0
            and abs(derived_minutes - entry.duration_minutes) > 1
        ):
            report.add_warning(
                "duration_minutes",
                f"Explicit duration ({entry.duration_minutes} min) differs from "
                f"start/end ({derived_minutes} min); the explicit value is used",
                entry.duration_minutes,
                context,
            )

        longest = max(entry.duration_minutes or 0, derived_minutes or 0)
        if longest > MAX_EXPECTED_MINUTES:
            report.add_warning(
                "duration_minutes",
                f"Entry spans more than 24 hours ({longest} min)",
                longest,
                context,
            )

        return report

    @staticmethod
    def validate_allowance(new_allowance: Optional[Decimal]) -> ValidationReport:
        """Validate a new annual hour allowance."""
        report = ValidationReport()
        if new_allowance is None:
            report.add_error("annual_hour_allowance", "Allowance is required", None)
        elif not Decimal(new_allowance).is_finite():
            report.add_error(
                "annual_hour_allowance", "Allowance must be a finite number", new_allowance
            )
        elif Decimal(new_allowance) < 0:
            report.add_error(
                "annual_hour_allowance", "Allowance cannot be negative", new_allowance
            )
        return report

    @staticmethod
    def validate_year(target_year: int, now: dt.datetime) -> ValidationReport:
        """Validate the target year of a yearly reset."""
        report = ValidationReport()
        if target_year < 1970 or target_year > now.year + 1:
            report.add_error(
                "target_year",
                f"Year must be between 1970 and {now.year + 1}",
                target_year,
            )
        return report


def raise_for_errors(report: ValidationReport, message: str) -> None:
    """Raise InvalidInputError if ``report`` has errors; log its warnings.

    Args:
        report: Report produced by one of the EntryValidators methods
        message: Headline for the raised error

    Raises:
        InvalidInputError: If the report contains errors
    """
    for warning in report.get_warnings():
        logger.warning(str(warning))

    if not report.is_valid():
        details = "; ".join(issue.message for issue in report.get_errors())
        raise InvalidInputError(
            f"{message}: {details}",
            recovery_hint="Correct the input and submit again",
            report=report,
        )


def parse_time_entry(**fields) -> TimeEntryInput:
    """Build a TimeEntryInput from raw caller input.

    Field errors raised by the model are collected into a ValidationReport
    and raised as InvalidInputError, like every other rejected entry.

    Raises:
        InvalidInputError: If any field fails model validation
    """
    try:
        return TimeEntryInput(**fields)
    except ValidationError as e:
        report = ValidationReport()
        for issue in e.errors():
            location = ".".join(str(part) for part in issue["loc"])
            report.add_error(location, f"{location}: {issue['msg']}", issue.get("input"))
        raise_for_errors(report, "Invalid time entry")
        raise
