"""
Audit stamps embedded in every entity.

AuditInfo is composed into WorkItem and Reminder rather than inherited. The
free functions below are the only code that touches the stamps.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class AuditInfo(BaseModel):
    """Created/updated/deleted stamps plus the optimistic-concurrency version."""

    created_at: datetime
    created_by: str
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    version: int = 1
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    # Version last read from or written to the store; None for unsaved entities.
    # Owned by repositories, never by entity operations.
    stored_version: Optional[int] = Field(default=None, exclude=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


def mark_created(actor: str, now: datetime) -> AuditInfo:
    """Build the audit stamps for a brand new entity."""
    return AuditInfo(created_at=now, created_by=actor, updated_at=now, updated_by=actor)


def mark_updated(audit: AuditInfo, actor: str, now: datetime) -> None:
    """Stamp a mutation and bump the version counter."""
    audit.updated_at = now
    audit.updated_by = actor
    audit.version += 1


def mark_deleted(audit: AuditInfo, actor: str, now: datetime) -> None:
    """Soft-delete stamp. Physical deletion is never done by the engine."""
    audit.deleted_at = now
    audit.deleted_by = actor
    mark_updated(audit, actor, now)
