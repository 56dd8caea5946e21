"""Recurring task template model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, Text
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from farmops.utils.dates import utcnow


class RecurringTaskTemplate(SQLModel, table=True):
    """Template that defines a schedule rule and checklist shape for task instances."""

    __tablename__ = "recurring_task"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    type: str = Field(default="other", max_length=50)  # seeding-microgreens, harvest-leafy-greens, cleaning, ...
    location: Optional[str] = Field(default=None, max_length=100, index=True)
    priority: str = Field(default="medium", max_length=20)  # high, medium, low
    assigned_to: Optional[int] = Field(default=None)
    created_by: Optional[int] = Field(default=None)
    estimated_time: Optional[int] = Field(default=None)  # minutes

    # Schedule rule
    frequency: str = Field(max_length=20)  # daily, weekly, bi-weekly, monthly
    days_of_week: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    day_of_month: Optional[int] = Field(default=None)  # stored only, monthly always means last day
    start_date: Optional[date] = Field(default=None)
    is_active: bool = Field(default=True)

    # Content
    checklist_template: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    automation: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    version_number: int = Field(default=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
