"""
Persistence for Taskminder.

Handles:
- Async SQLAlchemy engine and sessions (PostgreSQL via asyncpg)
- Work item and reminder tables with optimistic versioning
- Repository implementations used by the service and the jobs
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .exceptions import (
    DatabaseError,
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseOperationError,
    ConcurrencyError,
    EntityNotFoundError,
)
from .models import Base, WorkItemDB, ReminderDB

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseConstraintError",
    "DatabaseOperationError",
    "ConcurrencyError",
    "EntityNotFoundError",
    "Base",
    "WorkItemDB",
    "ReminderDB",
]
