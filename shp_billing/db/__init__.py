"""
Persistence layer: ORM models, engine/session management and repositories.
"""

from shp_billing.db.base import Base
from shp_billing.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from shp_billing.db.models import Client, Developer, Task, TimeEntry

__all__ = [
    "Base",
    "Client",
    "Developer",
    "Task",
    "TimeEntry",
    "create_engine_from_url",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
