"""Task instance model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, Integer, JSON, Text
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from farmops.utils.dates import utcnow


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PAUSED = "paused"
    SKIPPED = "skipped"
    APPROVED = "approved"


# Propagation never touches these and they are never reported as conflicted
TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED.value, TaskStatus.APPROVED.value, TaskStatus.SKIPPED.value}
)


class TaskInstance(SQLModel, table=True):
    """Concrete task, either generated from a recurring template or standalone."""

    __tablename__ = "task"
    __table_args__ = (Index("ix_task_recurring_task_day", "recurring_task_id", "task_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    type: str = Field(default="other", max_length=50)
    status: str = Field(default=TaskStatus.PENDING.value, max_length=20, index=True)
    priority: str = Field(default="medium", max_length=20)
    location: Optional[str] = Field(default=None, max_length=100, index=True)
    assigned_to: Optional[int] = Field(default=None)
    created_by: Optional[int] = Field(default=None)
    estimated_time: Optional[int] = Field(default=None)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))

    task_date: Optional[date] = Field(default=None, index=True)  # day the task becomes visible
    due_date: Optional[date] = Field(default=None, index=True)

    # Template linkage, NULL for standalone tasks and orphans of deleted templates
    recurring_task_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("recurring_task.id", ondelete="SET NULL"), index=True),
    )
    frequency: Optional[str] = Field(default=None, max_length=20)
    template_version: int = Field(default=1)

    # Modification tracking
    is_modified_after_creation: bool = Field(default=False)
    modified_from_template_at: Optional[datetime] = Field(default=None)
    is_from_deleted_recurring: bool = Field(default=False)
    deleted_recurring_task_title: Optional[str] = Field(default=None, max_length=200)

    # Conflict bookkeeping
    pending_change_id: Optional[int] = Field(default=None)
    acknowledged_template_version: Optional[int] = Field(default=None)
    needs_manager_review: bool = Field(default=False)

    # Progress state
    progress: int = Field(default=0, ge=0, le=100)
    checklist: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    data: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    paused_at: Optional[datetime] = Field(default=None)
    skipped_at: Optional[datetime] = Field(default=None)
    skip_reason: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
