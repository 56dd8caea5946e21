"""Template change record model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, Text
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from farmops.utils.dates import utcnow


class PropagationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    COMPLETED_WITH_CONFLICTS = "completed_with_conflicts"
    ERROR = "error"


class TemplateChangeRecord(SQLModel, table=True):
    """One propagation event produced by a template edit."""

    __tablename__ = "template_change"

    id: Optional[int] = Field(default=None, primary_key=True)
    # Plain column so the history outlives the template
    recurring_task_id: int = Field(index=True)
    recurring_task_title: Optional[str] = Field(default=None, max_length=200)
    changed_by: Optional[int] = Field(default=None)
    change_type: str = Field(default="update", max_length=20)
    strategy: str = Field(max_length=20)  # update_all, new_only
    changed_fields: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    old_values: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    new_values: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    from_version: int
    to_version: int
    affected_task_count: int = Field(default=0)
    conflict_count: int = Field(default=0)
    propagation_status: str = Field(default=PropagationStatus.PENDING.value, max_length=30)
    error_message: Optional[str] = Field(default=None, sa_column=Column(Text))
    changed_at: datetime = Field(default_factory=utcnow, index=True)
