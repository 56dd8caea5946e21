"""Decide where a task instance stands relative to its template."""
from enum import Enum
from typing import Optional

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus, TERMINAL_STATUSES


class TemplateState(str, Enum):
    NONE = "none"
    UPDATE_AVAILABLE = "update_available"  # advisory, no resolution needed
    CONFLICT = "conflict"


def _is_linked(instance: TaskInstance, template: Optional[RecurringTaskTemplate]) -> bool:
    return (
        template is not None
        and instance.recurring_task_id is not None
        and instance.recurring_task_id == template.id
        and not instance.is_from_deleted_recurring
    )


def is_version_behind(instance: TaskInstance, template: Optional[RecurringTaskTemplate]) -> bool:
    return _is_linked(instance, template) and instance.template_version < template.version_number


def is_acknowledged(instance: TaskInstance, template: RecurringTaskTemplate) -> bool:
    """True once keep_current was chosen against the template's current version."""
    return (
        instance.acknowledged_template_version is not None
        and instance.acknowledged_template_version >= template.version_number
    )


def is_in_conflict(instance: TaskInstance, template: Optional[RecurringTaskTemplate]) -> bool:
    """In-progress user work sitting on an older template version."""
    return (
        is_version_behind(instance, template)
        and instance.status == TaskStatus.IN_PROGRESS.value
        and instance.is_modified_after_creation
        and not is_acknowledged(instance, template)
    )


def has_update_available(instance: TaskInstance, template: Optional[RecurringTaskTemplate]) -> bool:
    return (
        instance.status not in TERMINAL_STATUSES
        and is_version_behind(instance, template)
        and not is_in_conflict(instance, template)
    )


def classify(instance: TaskInstance, template: Optional[RecurringTaskTemplate]) -> TemplateState:
    if instance.status in TERMINAL_STATUSES:
        return TemplateState.NONE
    if is_in_conflict(instance, template):
        return TemplateState.CONFLICT
    if has_update_available(instance, template):
        return TemplateState.UPDATE_AVAILABLE
    return TemplateState.NONE
