"""Billing value models.

This module defines the client usage snapshot the allowance engine works
on, the billing status lifecycle of a time entry, and the input accepted
when time is logged.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import Field, field_validator

from shp_billing.models.base import BaseDataModel


class BillingStatus(str, Enum):
    """Billing lifecycle of a time entry.

    PENDING -> BILLED -> PAID, or PENDING/BILLED -> WRITTEN_OFF. The engine
    only ever assigns PENDING; later states belong to invoicing.
    """

    PENDING = "PENDING"
    BILLED = "BILLED"
    PAID = "PAID"
    WRITTEN_OFF = "WRITTEN_OFF"

    def can_transition_to(self, target: "BillingStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    BillingStatus.PENDING: {BillingStatus.BILLED, BillingStatus.WRITTEN_OFF},
    BillingStatus.BILLED: {BillingStatus.PAID, BillingStatus.WRITTEN_OFF},
    BillingStatus.PAID: set(),
    BillingStatus.WRITTEN_OFF: set(),
}


def _to_decimal(v: Union[str, int, float, Decimal]) -> Decimal:
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v))
    except (ValueError, TypeError, ArithmeticError) as e:
        raise ValueError(f"Cannot convert {v} to Decimal: {e}")


class ClientUsage(BaseDataModel):
    """Allowance state of one client.

    ``yearly_hours_used`` only counts for the calendar year of
    ``last_year_reset``. When that is missing or lies in an earlier year the
    counter reads as zero, whatever value is stored.

    Attributes:
        client_id: Client identifier (None for ad-hoc evaluations)
        annual_hour_allowance: Free hours granted per calendar year
        yearly_hours_used: Hours consumed since ``last_year_reset``
        last_year_reset: When the yearly counter was last reset

    Example:
        >>> usage = ClientUsage(
        ...     annual_hour_allowance=Decimal("10"),
        ...     yearly_hours_used=Decimal("9"),
        ...     last_year_reset=dt.datetime(2025, 1, 1),
        ... )
        >>> usage.annual_hour_allowance
        Decimal('10')
    """

    client_id: Optional[str] = Field(None, description="Client identifier")
    annual_hour_allowance: Decimal = Field(
        ..., ge=0, description="Free hours per calendar year"
    )
    yearly_hours_used: Decimal = Field(
        Decimal("0"), ge=0, description="Hours used since last reset"
    )
    last_year_reset: Optional[dt.datetime] = Field(
        None, description="Timestamp of the last yearly reset"
    )

    @field_validator("annual_hour_allowance", "yearly_hours_used", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Union[str, int, float, Decimal]) -> Decimal:
        """Convert numeric values to Decimal for precision."""
        if v is None:
            return Decimal("0")
        return _to_decimal(v)


class TimeEntryInput(BaseDataModel):
    """Work logged against a task, as submitted by the caller.

    Numeric fields are range-checked by
    ``shp_billing.validators.entry_validators`` so that every problem is
    reported together instead of failing on the first one.

    Attributes:
        task_id: Task the work belongs to (the task links to one client)
        start_time: When the work started
        end_time: When the work ended (None for a running timer)
        duration_minutes: Explicit duration; derived from the times if absent
        hourly_rate: Explicit rate; falls back to developer then default rate
        developer_id: Person who did the work
        description: Free text
    """

    task_id: str = Field(..., min_length=1, description="Owning task")
    start_time: dt.datetime = Field(..., description="Work start")
    end_time: Optional[dt.datetime] = Field(None, description="Work end")
    duration_minutes: Optional[int] = Field(None, description="Duration in minutes")
    hourly_rate: Optional[Decimal] = Field(None, description="Hourly rate")
    developer_id: Optional[str] = Field(None, description="Developer identifier")
    description: Optional[str] = Field(None, description="Work description")

    @field_validator("task_id")
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        """Validate that the task id is not whitespace only."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace")
        return v.strip()

    @field_validator("hourly_rate", mode="before")
    @classmethod
    def convert_rate(cls, v):
        """Convert the rate to Decimal, keeping None as 'not supplied'."""
        if v is None:
            return None
        return _to_decimal(v)
