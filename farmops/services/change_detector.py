"""
Change detection for template edits.

Everything here is a pure function of its arguments: two template
snapshots and, for the impact estimate, the linked instances.
"""

import copy
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Tuple

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus, TERMINAL_STATUSES
from farmops.services.schedule_validator import ScheduleValidator

TRACKED_FIELDS = [
    "title",
    "description",
    "type",
    "location",
    "priority",
    "assigned_to",
    "estimated_time",
    "frequency",
    "days_of_week",
    "day_of_month",
    "start_date",
    "is_active",
    "checklist_template",
    "automation",
]

# Changes to these alter how the task is carried out
CRITICAL_FIELDS = frozenset({"title", "checklist_template", "priority"})


def to_jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return copy.deepcopy(value)


@dataclass
class FieldChange:
    """One changed template field."""
    field: str
    old_value: Any
    new_value: Any
    requires_notification: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "old_value": to_jsonable(self.old_value),
            "new_value": to_jsonable(self.new_value),
            "requires_notification": self.requires_notification,
        }


@dataclass
class ChangeSummary:
    changes: List[FieldChange] = field(default_factory=list)
    affected_instance_count: int = 0
    conflict_count: int = 0

    @property
    def changed_fields(self) -> List[str]:
        return [change.field for change in self.changes]

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    @property
    def has_critical_changes(self) -> bool:
        return any(change.requires_notification for change in self.changes)

    @property
    def old_values(self) -> Dict[str, Any]:
        return {change.field: to_jsonable(change.old_value) for change in self.changes}

    @property
    def new_values(self) -> Dict[str, Any]:
        return {change.field: to_jsonable(change.new_value) for change in self.changes}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changed_fields": [change.to_dict() for change in self.changes],
            "affected_instance_count": self.affected_instance_count,
            "conflict_count": self.conflict_count,
            "has_critical_changes": self.has_critical_changes,
        }


def template_snapshot(template: RecurringTaskTemplate) -> Dict[str, Any]:
    """Copy of every tracked field, safe to keep across later mutation."""
    return {name: copy.deepcopy(getattr(template, name)) for name in TRACKED_FIELDS}


def _comparable(field_name: str, value: Any) -> Any:
    if field_name == "days_of_week":
        return ScheduleValidator.normalize_days(value) or []
    if field_name == "frequency":
        return ScheduleValidator.normalize_frequency(value)
    if field_name in ("checklist_template", "automation"):
        return json.dumps(value, sort_keys=True, default=str) if value else None
    if field_name == "description":
        return value or None
    return value


def detect_changes(old: Dict[str, Any], new: Dict[str, Any]) -> List[FieldChange]:
    """List the tracked fields whose values differ, in TRACKED_FIELDS order."""
    changes = []
    for name in TRACKED_FIELDS:
        old_value = old.get(name)
        new_value = new.get(name, old_value)
        if _comparable(name, old_value) != _comparable(name, new_value):
            changes.append(FieldChange(
                field=name,
                old_value=old_value,
                new_value=new_value,
                requires_notification=name in CRITICAL_FIELDS,
            ))
    return changes


def is_affected(instance: TaskInstance, today: date) -> bool:
    """Non-terminal and due today or later."""
    return (
        instance.status not in TERMINAL_STATUSES
        and instance.due_date is not None
        and instance.due_date >= today
    )


def is_conflict_candidate(instance: TaskInstance) -> bool:
    return instance.status == TaskStatus.IN_PROGRESS.value and instance.is_modified_after_creation


def estimate_impact(instances: Iterable[TaskInstance], today: date) -> Tuple[int, int]:
    """Return (affected_instance_count, conflict_count)."""
    affected = [instance for instance in instances if is_affected(instance, today)]
    conflicts = [instance for instance in affected if is_conflict_candidate(instance)]
    return len(affected), len(conflicts)


def summarize(
    old: Dict[str, Any],
    new: Dict[str, Any],
    instances: Iterable[TaskInstance],
    today: date,
) -> ChangeSummary:
    changes = detect_changes(old, new)
    if not changes:
        return ChangeSummary()
    affected, conflicts = estimate_impact(instances, today)
    return ChangeSummary(changes=changes, affected_instance_count=affected, conflict_count=conflicts)
