"""Operations exposed to callers."""

from .work_items import OperationResult, WorkItemService

__all__ = ["OperationResult", "WorkItemService"]
