"""Conflict resolution audit model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, Text
from datetime import datetime
from typing import Any, Dict, Optional

from farmops.utils.dates import utcnow


class ConflictResolution(SQLModel, table=True):
    """Audit entry written for every resolve-conflict call."""

    __tablename__ = "conflict_resolution"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(index=True)
    recurring_task_id: Optional[int] = Field(default=None)
    change_id: Optional[int] = Field(default=None)
    action: str = Field(max_length=20)  # keep_current, apply_template, manual_merge, defer
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    template_changes: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    resolved_by: Optional[int] = Field(default=None)
    from_version: Optional[int] = Field(default=None)
    to_version: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
