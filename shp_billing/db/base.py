"""Declarative base for the billing engine's ORM models."""

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shp_billing.calculators.time_utils import utc_now


def new_id() -> str:
    """Generate an opaque primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Decimal columns default to four decimal places (hour precision); money
    columns declare ``Numeric(12, 2)`` explicitly. Never store amounts as
    floats.
    """

    type_annotation_map = {
        Decimal: Numeric(12, 4),
        dt.datetime: DateTime(),
    }


class IdMixin:
    """String UUID primary key."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class TimestampMixin:
    """Creation and last-update timestamps (naive UTC)."""

    created_at: Mapped[dt.datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )
