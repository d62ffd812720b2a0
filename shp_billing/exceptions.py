"""Typed errors raised by the billing engine.

Every failure the engine reports to its caller is one of these types. The
caller (the CLI, or an HTTP layer in the wider platform) decides how to
present it; see ``shp_billing.cli.error_handlers``.
"""

from typing import List, Optional


class BillingError(Exception):
    """Base exception for billing engine errors with user-friendly messages."""

    def __init__(self, message: str, recovery_hint: Optional[str] = None):
        """
        Initialize billing error.

        Args:
            message: Error message to display
            recovery_hint: Optional hint for recovering from the error
        """
        self.message = message
        self.recovery_hint = recovery_hint
        super().__init__(message)


class InvalidInputError(BillingError):
    """Input rejected before any state was mutated."""

    def __init__(
        self,
        message: str,
        recovery_hint: Optional[str] = None,
        report=None,
    ):
        super().__init__(message, recovery_hint)
        # ValidationReport with the individual issues, when available
        self.report = report


class NotFoundError(BillingError):
    """A referenced client, task, developer or time entry does not exist."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        if identifier:
            message = f"{resource} not found: {identifier}"
        else:
            message = f"{resource} not found"
        super().__init__(message)


class ConcurrentUpdateConflict(BillingError):
    """Two usage updates for the same client raced and this one lost.

    The caller should retry the whole evaluate and apply sequence against a
    freshly read client snapshot.
    """

    def __init__(self, client_id: str, message: Optional[str] = None):
        self.client_id = client_id
        super().__init__(
            message or f"Concurrent usage update for client {client_id}",
            recovery_hint="Retry the operation against a fresh client snapshot",
        )


class PartialRecalculationFailure(BillingError):
    """A recalculation pass failed to persist and was rolled back."""

    def __init__(
        self,
        client_id: str,
        failed_entry_ids: List[str],
        cause: Optional[Exception] = None,
    ):
        self.client_id = client_id
        self.failed_entry_ids = list(failed_entry_ids)
        self.cause = cause
        detail = f": {type(cause).__name__}: {cause}" if cause else ""
        super().__init__(
            f"Recalculation for client {client_id} rolled back "
            f"(failed entries: {', '.join(self.failed_entry_ids) or 'none'})"
            f"{detail}",
            recovery_hint="No billing fields were changed; rerun the recalculation",
        )
