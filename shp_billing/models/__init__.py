"""Data models for the billing engine.

This package contains Pydantic models for the values the engine exchanges
with its callers:
- BaseDataModel: Base class with common configuration
- BillingStatus: Billing lifecycle of a time entry
- ClientUsage: A client's allowance and yearly usage snapshot
- TimeEntryInput: Work logged against a task
"""

from shp_billing.models.base import BaseDataModel
from shp_billing.models.billing import BillingStatus, ClientUsage, TimeEntryInput

__all__ = [
    "BaseDataModel",
    "BillingStatus",
    "ClientUsage",
    "TimeEntryInput",
]
