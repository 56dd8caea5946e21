"""SQLModel tables for the recurring task subsystem."""
from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus, TERMINAL_STATUSES
from farmops.models.template_change import TemplateChangeRecord, PropagationStatus
from farmops.models.notification import Notification
from farmops.models.conflict_resolution import ConflictResolution

__all__ = [
    "RecurringTaskTemplate",
    "TaskInstance",
    "TaskStatus",
    "TERMINAL_STATUSES",
    "TemplateChangeRecord",
    "PropagationStatus",
    "Notification",
    "ConflictResolution",
]
