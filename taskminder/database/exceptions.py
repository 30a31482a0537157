"""Custom exceptions for database operations.

These are infrastructure failures: the dispatcher retries them, the service
layer reports them, and neither ever records them on a reminder.
"""


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Database connection failed."""
    pass


class DatabaseConstraintError(DatabaseError):
    """Database constraint violation (duplicate, foreign key, etc)."""
    pass


class DatabaseOperationError(DatabaseError):
    """General database operation failed."""
    pass


class ConcurrencyError(DatabaseError):
    """Optimistic version check failed: another writer got there first."""

    def __init__(self, entity: str, entity_id: str, expected_version):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently (expected version {expected_version})"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version


class EntityNotFoundError(DatabaseError):
    """Requested entity not found."""
    pass
