"""Task instance service: listing, user edits and status changes."""
from datetime import date
from typing import List, Optional, Tuple

from sqlmodel import Session, or_, select

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus, TERMINAL_STATUSES
from farmops.schemas.task import TaskUpdate
from farmops.services.checklist import checklist_progress
from farmops.services.conflict_classifier import TemplateState, classify
from farmops.services.errors import NotFoundError, ValidationError
from farmops.utils.dates import utcnow

# Edits to these make an instance diverge from its template
CONTENT_FIELDS = ("title", "description", "priority", "notes", "estimated_time", "assigned_to", "location")

ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING.value: {TaskStatus.IN_PROGRESS.value, TaskStatus.SKIPPED.value},
    TaskStatus.IN_PROGRESS.value: {TaskStatus.PAUSED.value, TaskStatus.COMPLETED.value, TaskStatus.SKIPPED.value},
    TaskStatus.PAUSED.value: {TaskStatus.IN_PROGRESS.value, TaskStatus.SKIPPED.value},
    TaskStatus.COMPLETED.value: {TaskStatus.APPROVED.value},
    TaskStatus.SKIPPED.value: set(),
    TaskStatus.APPROVED.value: set(),
}


class TaskService:
    """Service class for task instance operations."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, task_id: int) -> Optional[TaskInstance]:
        return self.session.get(TaskInstance, task_id)

    def get_or_raise(self, task_id: int) -> TaskInstance:
        task = self.get_by_id(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def list_tasks(
        self,
        location: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        recurring_task_id: Optional[int] = None,
    ) -> List[TaskInstance]:
        """Get tasks filtered by location, status, task date range and template."""
        statement = select(TaskInstance)

        if location:
            statement = statement.where(TaskInstance.location == location)
        if status:
            statement = statement.where(TaskInstance.status == status)
        if date_from:
            statement = statement.where(TaskInstance.task_date >= date_from)
        if date_to:
            statement = statement.where(TaskInstance.task_date <= date_to)
        if recurring_task_id is not None:
            statement = statement.where(TaskInstance.recurring_task_id == recurring_task_id)

        statement = statement.order_by(TaskInstance.task_date, TaskInstance.id)
        return list(self.session.exec(statement).all())

    def template_for(self, task: TaskInstance) -> Optional[RecurringTaskTemplate]:
        if task.recurring_task_id is None or task.is_from_deleted_recurring:
            return None
        return self.session.get(RecurringTaskTemplate, task.recurring_task_id)

    def template_state(self, task: TaskInstance) -> Tuple[TemplateState, Optional[int]]:
        template = self.template_for(task)
        return classify(task, template), template.version_number if template is not None else None

    def with_template_updates(self) -> List[Tuple[TaskInstance, TemplateState, int]]:
        """Linked, non-terminal tasks that were modified or sit on an older template version."""
        statement = (
            select(TaskInstance, RecurringTaskTemplate)
            .join(RecurringTaskTemplate, TaskInstance.recurring_task_id == RecurringTaskTemplate.id)
            .where(TaskInstance.is_from_deleted_recurring == False)  # noqa: E712
            .where(TaskInstance.status.not_in(list(TERMINAL_STATUSES)))
            .where(or_(
                TaskInstance.is_modified_after_creation == True,  # noqa: E712
                TaskInstance.template_version < RecurringTaskTemplate.version_number,
            ))
            .order_by(TaskInstance.task_date, TaskInstance.id)
        )
        return [
            (task, classify(task, template), template.version_number)
            for task, template in self.session.exec(statement).all()
        ]

    def update_task(self, task_id: int, task_data: TaskUpdate) -> TaskInstance:
        """
        Apply a user's edit.

        Content edits mark the task as modified after creation; checklist
        ticks, captured data and progress are normal work and do not.
        """
        task = self.get_or_raise(task_id)
        updates = task_data.model_dump(exclude_unset=True)

        content_changed = False
        for name in CONTENT_FIELDS:
            if name in updates and updates[name] != getattr(task, name):
                if name in ("title", "priority") and updates[name] is None:
                    continue
                setattr(task, name, updates[name])
                content_changed = True

        if task_data.checklist is not None:
            items = {item.id: item for item in task_data.checklist}
            unknown = set(items) - {item.get("id") for item in task.checklist or []}
            if unknown:
                raise ValidationError(
                    "Unknown checklist items",
                    {"ids": sorted(unknown)}
                )
            checklist = []
            for existing in task.checklist or []:
                item = dict(existing)
                change = items.get(item.get("id"))
                if change is not None:
                    if change.completed is not None:
                        item["completed"] = change.completed
                    if "data" in change.model_fields_set:
                        item["data"] = change.data
                        if item.get("data_collection"):
                            item["data_collection"] = {**item["data_collection"], "value": change.data}
                checklist.append(item)
            task.checklist = checklist
            if task_data.progress is None:
                task.progress = checklist_progress(checklist) or 0

        if task_data.progress is not None:
            task.progress = task_data.progress
        if task_data.data is not None:
            task.data = {**(task.data or {}), **task_data.data}

        now = utcnow()
        if content_changed and task.recurring_task_id is not None:
            task.is_modified_after_creation = True
            task.modified_from_template_at = now
        task.updated_at = now

        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def change_status(self, task_id: int, status: str, reason: Optional[str] = None) -> TaskInstance:
        """Move a task through its lifecycle and stamp the matching timestamp."""
        task = self.get_or_raise(task_id)
        status = TaskStatus(status).value

        if status not in ALLOWED_TRANSITIONS.get(task.status, set()):
            raise ValidationError(
                f"Cannot move task from {task.status} to {status}",
                {"from": task.status, "to": status}
            )

        now = utcnow()
        if status == TaskStatus.IN_PROGRESS.value:
            if task.started_at is None:
                task.started_at = now
            task.paused_at = None
        elif status == TaskStatus.PAUSED.value:
            task.paused_at = now
        elif status == TaskStatus.COMPLETED.value:
            task.completed_at = now
            task.progress = 100
        elif status == TaskStatus.SKIPPED.value:
            task.skipped_at = now
            task.skip_reason = reason

        task.status = status
        task.updated_at = now
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

