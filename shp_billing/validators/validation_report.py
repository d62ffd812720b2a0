"""Validation report for collecting and formatting input issues."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional


class ValidationSeverity(IntEnum):
    """Severity levels for validation issues."""

    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass
class ValidationIssue:
    """Represents a single validation issue.

    Attributes:
        severity: The severity level of the issue
        field: The field name that has the issue
        message: Human-readable description of the issue
        value: The value that caused the issue
        context: Optional context information (e.g., task_id, client_id)
    """

    severity: ValidationSeverity
    field: str
    message: str
    value: Any
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        context_str = ""
        if self.context:
            context_parts = [f"{k}={v}" for k, v in self.context.items()]
            context_str = f" ({', '.join(context_parts)})"

        return f"[{self.severity.name}] {self.field}: {self.message}{context_str}"


class ValidationReport:
    """Collects validation issues for one operation's input.

    Errors block the operation; warnings are logged and the operation
    proceeds.

    Example:
        >>> report = ValidationReport()
        >>> report.add_error("duration_minutes", "Cannot be negative", -5)
        >>> report.is_valid()
        False
    """

    def __init__(self) -> None:
        self.issues: List[ValidationIssue] = []

    @property
    def error_count(self) -> int:
        return len(self.get_errors())

    @property
    def warning_count(self) -> int:
        return len(self.get_warnings())

    def is_valid(self) -> bool:
        """Check if validation passed (no errors).

        Returns:
            True if no errors are present, False otherwise
        """
        return self.error_count == 0

    def add_issue(
        self,
        severity: ValidationSeverity,
        field: str,
        message: str,
        value: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Add an issue of the given severity to the report."""
        self.issues.append(
            ValidationIssue(
                severity=severity,
                field=field,
                message=message,
                value=value,
                context=context,
            )
        )

    def add_error(
        self,
        field: str,
        message: str,
        value: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.add_issue(ValidationSeverity.ERROR, field, message, value, context)

    def add_warning(
        self,
        field: str,
        message: str,
        value: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.add_issue(ValidationSeverity.WARNING, field, message, value, context)

    def get_errors(self) -> List[ValidationIssue]:
        return [
            issue for issue in self.issues if issue.severity == ValidationSeverity.ERROR
        ]

    def get_warnings(self) -> List[ValidationIssue]:
        return [
            issue
            for issue in self.issues
            if issue.severity == ValidationSeverity.WARNING
        ]

    def summary(self) -> str:
        """Get a summary of the validation report.

        Returns:
            Summary string with counts of errors and warnings
        """
        parts = []
        if self.error_count > 0:
            parts.append(f"{self.error_count} error(s)")
        if self.warning_count > 0:
            parts.append(f"{self.warning_count} warning(s)")

        if not parts:
            return "No issues found"

        return ", ".join(parts)

    def format(self) -> str:
        """Format the validation report for display.

        Returns:
            Formatted string with all issues, errors first
        """
        if not self.issues:
            return "Validation successful - no issues found"

        lines = [f"Validation Report - {self.summary()}", "=" * 60]
        for issue in sorted(self.issues, key=lambda i: i.severity, reverse=True):
            lines.append(f"  - {issue}")

        return "\n".join(lines)
