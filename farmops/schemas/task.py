"""Task instance schemas."""
from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from farmops.models.task import TaskStatus


class ResolutionAction(str, Enum):
    KEEP_CURRENT = "keep_current"
    APPLY_TEMPLATE = "apply_template"
    MANUAL_MERGE = "manual_merge"
    DEFER = "defer"


class ChecklistItemUpdate(BaseModel):
    """Completion state or captured data for one checklist item."""
    id: str
    completed: Optional[bool] = None
    data: Optional[Any] = None


class TaskUpdate(BaseModel):
    """Schema for user edits to a task instance."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Optional[str] = Field(None, pattern=r"^(high|medium|low)$")
    notes: Optional[str] = Field(None, max_length=5000)
    estimated_time: Optional[int] = Field(None, ge=0)
    assigned_to: Optional[int] = None
    location: Optional[str] = Field(None, max_length=100)
    checklist: Optional[List[ChecklistItemUpdate]] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    data: Optional[Dict[str, Any]] = None


class TaskStatusChange(BaseModel):
    status: TaskStatus
    reason: Optional[str] = Field(None, max_length=500)


class ResolveConflictRequest(BaseModel):
    """Body of POST /tasks/{id}/resolve-conflict."""
    action: ResolutionAction
    notes: Optional[str] = Field(None, max_length=2000)
    template_changes: Optional[Any] = None
    resolved_by: Optional[int] = None


class TaskResponse(BaseModel):
    """Schema for task instance API responses."""
    id: int
    title: str
    description: Optional[str] = None
    type: str
    status: str
    priority: str
    location: Optional[str] = None
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    estimated_time: Optional[int] = None
    notes: Optional[str] = None
    task_date: Optional[date] = None
    due_date: Optional[date] = None
    recurring_task_id: Optional[int] = None
    frequency: Optional[str] = None
    template_version: int
    is_modified_after_creation: bool
    modified_from_template_at: Optional[datetime] = None
    is_from_deleted_recurring: bool
    deleted_recurring_task_title: Optional[str] = None
    pending_change_id: Optional[int] = None
    acknowledged_template_version: Optional[int] = None
    needs_manager_review: bool
    progress: int
    checklist: Optional[List[Dict[str, Any]]] = None
    data: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    skipped_at: Optional[datetime] = None
    skip_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskWithTemplateState(TaskResponse):
    """Task annotated with its standing against the template."""
    template_state: str  # none, update_available, conflict
    current_template_version: Optional[int] = None


class ConflictResolutionResult(BaseModel):
    task: TaskResponse
    action: ResolutionAction
    template_state: str
    resolution_id: int
    message: str


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
