"""
Services module for the billing engine.
"""

from shp_billing.services.billing_service import (
    AllowanceUpdateResult,
    BillingService,
    BulkRecalculationResult,
    RecalculationSummary,
    TimeEntryResult,
    YearResetResult,
)
from shp_billing.services.client_locks import ClientLockRegistry
from shp_billing.services.error_classifier import ErrorClassifier, ErrorType
from shp_billing.services.retry_handler import RetryHandler

__all__ = [
    "AllowanceUpdateResult",
    "BillingService",
    "BulkRecalculationResult",
    "ClientLockRegistry",
    "ErrorClassifier",
    "ErrorType",
    "RecalculationSummary",
    "RetryHandler",
    "TimeEntryResult",
    "YearResetResult",
]
