"""Notification model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Text
from datetime import datetime
from typing import Optional

from farmops.utils.dates import utcnow


class Notification(SQLModel, table=True):
    """In-app notification for an assignee or manager."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    type: str = Field(max_length=50)  # template_conflict, template_manual_review, template_update
    title: str = Field(max_length=200)
    message: str = Field(sa_column=Column(Text, nullable=False))
    related_id: Optional[int] = Field(default=None)
    related_type: Optional[str] = Field(default=None, max_length=50)
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
