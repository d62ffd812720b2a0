"""Repositories - database queries for the billing engine."""

import datetime as dt
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from shp_billing.db.models import Client, Developer, Task, TimeEntry
from shp_billing.exceptions import NotFoundError


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def get(db: Session, client_id: str, for_update: bool = False) -> Optional[Client]:
        """Get a client by ID.

        With ``for_update`` the row is locked until the transaction ends and
        the identity map is refreshed, so the caller sees the latest usage.
        """
        stmt = select(Client).where(Client.id == client_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def get_or_raise(db: Session, client_id: str, for_update: bool = False) -> Client:
        """Get a client by ID or raise NotFoundError"""
        client = ClientRepository.get(db, client_id, for_update=for_update)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    @staticmethod
    def list_clients(db: Session, client_id: Optional[str] = None) -> List[Client]:
        """List all clients, or just one when ``client_id`` is given"""
        stmt = select(Client).order_by(Client.domain_name)
        if client_id:
            stmt = stmt.where(Client.id == client_id)
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_ids(db: Session) -> List[str]:
        """IDs of all clients"""
        return list(db.execute(select(Client.id).order_by(Client.id)).scalars())

    @staticmethod
    def list_ids_needing_reset(db: Session, reset_date: dt.datetime) -> List[str]:
        """IDs of clients never reset or last reset before ``reset_date``"""
        stmt = (
            select(Client.id)
            .where(
                or_(Client.last_year_reset.is_(None), Client.last_year_reset < reset_date)
            )
            .order_by(Client.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def create(db: Session, **client_data) -> Client:
        """Create a new client"""
        client = Client(**client_data)
        db.add(client)
        db.flush()
        return client


class DeveloperRepository:
    """Repository for developer database operations"""

    @staticmethod
    def get(db: Session, developer_id: str) -> Optional[Developer]:
        return db.get(Developer, developer_id)

    @staticmethod
    def create(db: Session, **developer_data) -> Developer:
        developer = Developer(**developer_data)
        db.add(developer)
        db.flush()
        return developer


class TaskRepository:
    """Repository for task database operations"""

    @staticmethod
    def get(db: Session, task_id: str) -> Optional[Task]:
        return db.get(Task, task_id)

    @staticmethod
    def create(db: Session, **task_data) -> Task:
        task = Task(**task_data)
        db.add(task)
        db.flush()
        return task


class TimeEntryRepository:
    """Repository for time entry database operations"""

    @staticmethod
    def get(db: Session, entry_id: str) -> Optional[TimeEntry]:
        return db.get(TimeEntry, entry_id)

    @staticmethod
    def create(db: Session, **entry_data) -> TimeEntry:
        entry = TimeEntry(**entry_data)
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def list_for_client(db: Session, client_id: str) -> List[TimeEntry]:
        """All entries of a client, chronologically by start time"""
        stmt = (
            select(TimeEntry)
            .join(Task, TimeEntry.task_id == Task.id)
            .where(Task.client_id == client_id)
            .options(joinedload(TimeEntry.developer))
            .order_by(TimeEntry.start_time, TimeEntry.created_at, TimeEntry.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def latest_active_timer(
        db: Session, entry_id: Optional[str] = None
    ) -> Optional[TimeEntry]:
        """The given running timer, or the most recently started one"""
        stmt = select(TimeEntry).where(
            TimeEntry.end_time.is_(None), TimeEntry.duration_minutes.is_(None)
        )
        if entry_id:
            stmt = stmt.where(TimeEntry.id == entry_id)
        stmt = stmt.order_by(TimeEntry.start_time.desc()).limit(1)
        return db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def list_in_range(
        db: Session,
        start: dt.datetime,
        end: dt.datetime,
        client_id: Optional[str] = None,
        developer_id: Optional[str] = None,
    ) -> List[TimeEntry]:
        """Entries started within [start, end], with task, client and developer"""
        stmt = (
            select(TimeEntry)
            .join(Task, TimeEntry.task_id == Task.id)
            .where(TimeEntry.start_time >= start, TimeEntry.start_time <= end)
            .options(
                joinedload(TimeEntry.task).joinedload(Task.client),
                joinedload(TimeEntry.developer),
            )
            .order_by(TimeEntry.start_time)
        )
        if client_id:
            stmt = stmt.where(Task.client_id == client_id)
        if developer_id:
            stmt = stmt.where(TimeEntry.developer_id == developer_id)
        return list(db.execute(stmt).unique().scalars())
