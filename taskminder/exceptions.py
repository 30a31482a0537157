"""
Domain errors raised by entities and the transition policy.

These describe bad requests, never infrastructure trouble. The service layer
turns them into failed OperationResult values; they are never retried.
"""

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    kind = "domain"


class ValidationError(DomainError):
    """Operation input rejected (past fire time, limits exceeded, ...)."""

    kind = "validation"


class InvalidStateError(DomainError):
    """Requested transition is not allowed from the entity's current state."""

    kind = "state"

    def __init__(self, message: str, current: Optional[Any] = None, target: Optional[Any] = None):
        super().__init__(message)
        self.current = current
        self.target = target

    @classmethod
    def for_transition(cls, entity: str, current: Any, target: Any) -> "InvalidStateError":
        current_name = getattr(current, "value", current)
        target_name = getattr(target, "value", target)
        return cls(
            f"Cannot transition {entity} from '{current_name}' to '{target_name}'",
            current=current,
            target=target,
        )


class NotFoundError(DomainError):
    """Referenced work item or reminder does not exist."""

    kind = "not_found"


class AccessDeniedError(DomainError):
    """Entity belongs to a different tenant than the caller."""

    kind = "access_denied"
