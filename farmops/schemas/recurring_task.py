"""Recurring task template schemas."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from farmops.schemas.checklist import AutomationSettings, ChecklistStep


class PropagationStrategy(str, Enum):
    UPDATE_ALL = "update_all"
    NEW_ONLY = "new_only"


def _default_step_type(steps: Any) -> Any:
    # Steps saved without a kind are plain instructions
    if isinstance(steps, list):
        return [
            {**step, "type": step.get("type") or "instruction"} if isinstance(step, dict) else step
            for step in steps
        ]
    return steps


class RecurringTaskBase(BaseModel):
    description: Optional[str] = Field(None, max_length=2000)
    type: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=100)
    priority: Optional[str] = Field(None, pattern=r"^(high|medium|low)$")
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    estimated_time: Optional[int] = Field(None, ge=0)
    days_of_week: Optional[List[str]] = None
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    start_date: Optional[date] = None
    is_active: Optional[bool] = None
    checklist_template: Optional[List[ChecklistStep]] = None
    automation: Optional[AutomationSettings] = None

    @field_validator("checklist_template", mode="before")
    @classmethod
    def default_step_type(cls, steps):
        return _default_step_type(steps)

    def to_template_fields(self) -> Dict[str, Any]:
        """Explicitly provided fields, with nested blobs reduced to plain JSON."""
        fields = self.model_dump(exclude_unset=True, exclude={"strategy", "changed_by", "expected_version"})
        if "checklist_template" in fields and self.checklist_template is not None:
            fields["checklist_template"] = [
                step.model_dump(mode="json") for step in self.checklist_template
            ]
        if "automation" in fields and self.automation is not None:
            fields["automation"] = self.automation.model_dump(mode="json")
        return fields


class RecurringTaskCreate(RecurringTaskBase):
    """Schema for creating a recurring task template."""
    title: str = Field(..., min_length=1, max_length=200)
    frequency: str = Field(..., pattern=r"^(daily|weekly|bi-weekly|biweekly|monthly)$")


class RecurringTaskUpdate(RecurringTaskBase):
    """Schema for editing a template; only the fields sent are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    frequency: Optional[str] = Field(None, pattern=r"^(daily|weekly|bi-weekly|biweekly|monthly)$")
    strategy: PropagationStrategy = PropagationStrategy.UPDATE_ALL
    changed_by: Optional[int] = None
    expected_version: Optional[int] = Field(None, ge=1)  # optimistic concurrency check


class RecurringTaskResponse(BaseModel):
    """Schema for recurring task API responses."""
    id: int
    title: str
    description: Optional[str] = None
    type: str
    location: Optional[str] = None
    priority: str
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    estimated_time: Optional[int] = None
    frequency: str
    days_of_week: Optional[List[str]] = None
    day_of_month: Optional[int] = None
    start_date: Optional[date] = None
    is_active: bool
    checklist_template: Optional[List[Dict[str, Any]]] = None
    automation: Optional[Dict[str, Any]] = None
    version_number: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FieldChangeResponse(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None
    requires_notification: bool


class ChangeSummaryResponse(BaseModel):
    """What an edit changes and how many instances it reaches."""
    changed_fields: List[FieldChangeResponse]
    affected_instance_count: int
    conflict_count: int
    has_critical_changes: bool


class ProgressEvent(BaseModel):
    current: int
    total: int
    stage: str


class PropagationReportResponse(BaseModel):
    strategy: PropagationStrategy
    status: str
    total_instances: int
    processed_instances: int
    updated_instances: int
    conflict_count: int
    progress: List[ProgressEvent] = []


class TemplateChangeResponse(BaseModel):
    """Schema for template change records polled by the UI."""
    id: int
    recurring_task_id: int
    recurring_task_title: Optional[str] = None
    changed_by: Optional[int] = None
    change_type: str
    strategy: str
    changed_fields: List[str]
    old_values: Dict[str, Any]
    new_values: Dict[str, Any]
    from_version: int
    to_version: int
    affected_task_count: int
    conflict_count: int
    propagation_status: str
    error_message: Optional[str] = None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecurringTaskUpdateResult(BaseModel):
    task: RecurringTaskResponse
    changes: ChangeSummaryResponse
    change_record: Optional[TemplateChangeResponse] = None
    report: Optional[PropagationReportResponse] = None


class RecurringTaskCreateResult(BaseModel):
    task: RecurringTaskResponse
    generated_instances: int
    message: str


class RecurringTaskDeleteResult(BaseModel):
    message: str
    removed_instances: int
    orphaned_instances: int


class GenerationResult(BaseModel):
    generated_instances: int
    templates_processed: int
    start_date: date
    end_date: date
