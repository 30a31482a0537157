"""
Repository classes for database operations.

ReminderRepository is the contract; InMemoryRepository and
SqlReminderRepository are the two stores behind it.
"""

from .base import ReminderRepository
from .memory import InMemoryRepository
from .sql import SqlReminderRepository, get_sql_repository

__all__ = [
    "ReminderRepository",
    "InMemoryRepository",
    "SqlReminderRepository",
    "get_sql_repository",
]
