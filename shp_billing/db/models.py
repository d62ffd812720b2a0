"""ORM models for clients, developers, tasks and time entries."""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shp_billing.calculators.allowance_calculator import EntryBilling
from shp_billing.db.base import Base, IdMixin, TimestampMixin
from shp_billing.models.billing import BillingStatus, ClientUsage


class Client(IdMixin, TimestampMixin, Base):
    """A client with an annual allowance of free hours.

    ``version`` is bumped by SQLAlchemy on every UPDATE; a write based on a
    stale read fails with ``StaleDataError`` instead of silently losing
    another writer's usage increment.
    """

    __tablename__ = "clients"

    domain_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    annual_hour_allowance: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), default=Decimal("2.0"), nullable=False
    )
    yearly_hours_used: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), default=Decimal("0"), nullable=False
    )
    last_year_reset: Mapped[Optional[dt.datetime]] = mapped_column(nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    tasks: Mapped[List["Task"]] = relationship(back_populates="client")

    __mapper_args__ = {"version_id_col": version}

    def to_usage(self) -> ClientUsage:
        """Snapshot of the allowance state for the calculators."""
        return ClientUsage(
            client_id=self.id,
            annual_hour_allowance=self.annual_hour_allowance,
            yearly_hours_used=self.yearly_hours_used,
            last_year_reset=self.last_year_reset,
        )

    def apply_usage(self, usage: ClientUsage) -> None:
        """Copy a computed usage back onto the row."""
        self.yearly_hours_used = usage.yearly_hours_used
        self.last_year_reset = usage.last_year_reset

    def __repr__(self) -> str:
        return f"<Client {self.domain_name} used={self.yearly_hours_used}>"


class Developer(IdMixin, TimestampMixin, Base):
    """A person logging time; may carry a default hourly rate."""

    __tablename__ = "developers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    time_entries: Mapped[List["TimeEntry"]] = relationship(back_populates="developer")


class Task(IdMixin, TimestampMixin, Base):
    """A unit of work for exactly one client."""

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False)

    client: Mapped[Client] = relationship(back_populates="tasks")
    time_entries: Mapped[List["TimeEntry"]] = relationship(back_populates="task")


class TimeEntry(IdMixin, TimestampMixin, Base):
    """Logged work and its billing fields.

    An entry without ``end_time`` and ``duration_minutes`` is a running
    timer; it is billed when stopped.
    """

    __tablename__ = "time_entries"

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_time: Mapped[dt.datetime] = mapped_column(nullable=False, index=True)
    end_time: Mapped[Optional[dt.datetime]] = mapped_column(nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    billing_status: Mapped[BillingStatus] = mapped_column(
        Enum(BillingStatus, native_enum=False, length=16),
        default=BillingStatus.PENDING,
        nullable=False,
    )
    billable_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    developer_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    is_within_allowance: Mapped[bool] = mapped_column(default=False, nullable=False)

    task_id: Mapped[str] = mapped_column(ForeignKey("tasks.id"), nullable=False)
    developer_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("developers.id", ondelete="SET NULL"), nullable=True
    )

    task: Mapped[Task] = relationship(back_populates="time_entries")
    developer: Mapped[Optional[Developer]] = relationship(back_populates="time_entries")

    @property
    def is_active_timer(self) -> bool:
        return self.end_time is None and self.duration_minutes is None

    def apply_billing(self, billing: EntryBilling) -> None:
        """Store computed billing fields on the row."""
        self.billing_status = billing.billing_status
        self.billable_amount = billing.billable_amount
        self.developer_amount = billing.developer_amount
        self.is_within_allowance = billing.is_within_allowance
