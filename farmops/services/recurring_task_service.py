"""
Recurring Task Service

Template lifecycle: create (with first generation pass), edit (change
detection, version bump, propagation), delete (prune future work, orphan
history) and regeneration of the rolling window.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus
from farmops.models.template_change import PropagationStatus, TemplateChangeRecord
from farmops.schemas.recurring_task import RecurringTaskCreate, RecurringTaskUpdate
from farmops.services.change_detector import ChangeSummary, summarize, template_snapshot, to_jsonable
from farmops.services.checklist import normalize_steps
from farmops.services.errors import FarmOpsError, StaleTemplateError, ValidationError
from farmops.services.instance_generator import InstanceGenerator
from farmops.services.notification_service import NotificationService
from farmops.services.propagation_engine import PropagationEngine, PropagationReport, ProgressCallback
from farmops.services.schedule_validator import ScheduleValidator
from farmops.services.template_store import TemplateStore
from farmops.utils.dates import GENERATION_WINDOW_DAYS, farm_today, utcnow

logger = logging.getLogger(__name__)

# Columns that cannot hold NULL; an explicit null from the client means "leave as is"
NON_NULLABLE_FIELDS = ("title", "type", "priority", "frequency", "is_active")
SCHEDULE_FIELDS = ("frequency", "days_of_week", "day_of_month", "start_date")


class RecurringTaskService:
    """Orchestrates the template store, generator and propagation engine for one request."""

    def __init__(self, session: Session, today: Optional[Callable[[], date]] = None):
        self.session = session
        self.store = TemplateStore(session)
        self.generator = InstanceGenerator(session)
        self.notifications = NotificationService(session)
        self.engine = PropagationEngine(session, self.notifications)
        self._today = today or farm_today

    def today(self) -> date:
        return self._today()

    def _prepare_fields(self, fields: Dict[str, Any], step_ids: Iterable[str] = ()) -> Dict[str, Any]:
        prepared = {
            name: value for name, value in fields.items()
            if not (name in NON_NULLABLE_FIELDS and value is None)
        }
        if "frequency" in prepared:
            prepared["frequency"] = ScheduleValidator.normalize_frequency(prepared["frequency"])
        if "days_of_week" in prepared:
            prepared["days_of_week"] = ScheduleValidator.normalize_days(prepared["days_of_week"])
        if "checklist_template" in prepared:
            prepared["checklist_template"] = normalize_steps(prepared["checklist_template"], reserved=step_ids)
        return prepared

    def _validate_schedule(self, schedule: Dict[str, Any]) -> None:
        result = ScheduleValidator.validate_schedule(schedule)
        for warning in result["warnings"]:
            logger.warning(f"Schedule warning: {warning}")
        if not result["valid"]:
            raise ValidationError(
                ", ".join(result["errors"]),
                {"errors": result["errors"], "warnings": result["warnings"]}
            )

    def list_templates(self, location: Optional[str] = None) -> List[RecurringTaskTemplate]:
        return self.store.list(location=location)

    def get_template(self, template_id: int) -> RecurringTaskTemplate:
        return self.store.get_or_raise(template_id)

    def list_instances(self, template_id: int) -> List[TaskInstance]:
        self.store.get_or_raise(template_id)
        statement = (
            select(TaskInstance)
            .where(TaskInstance.recurring_task_id == template_id)
            .order_by(TaskInstance.task_date, TaskInstance.id)
        )
        return list(self.session.exec(statement).all())

    def create_template(self, task_data: RecurringTaskCreate) -> Tuple[RecurringTaskTemplate, List[TaskInstance]]:
        """
        Create a template and generate its first window of instances.

        Template and instances are committed together; if generation fails
        the template is not kept.
        """
        fields = self._prepare_fields(task_data.to_template_fields())
        self._validate_schedule(fields)

        try:
            template = self.store.create(fields)
            instances = self.generator.generate_window(template, self.today())
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Failed to create recurring task '{fields.get('title')}': {str(e)}")
            raise FarmOpsError(
                "GENERATION_ERROR",
                "Failed to generate task instances for recurring task",
                {"title": fields.get("title")}
            ) from e

        self.session.refresh(template)
        logger.info(f"Created recurring task {template.id} '{template.title}' with {len(instances)} instances")
        return template, instances

    def _summarize(
        self,
        template: RecurringTaskTemplate,
        task_data: RecurringTaskUpdate,
    ) -> Tuple[Dict[str, Any], ChangeSummary]:
        step_ids = [step.get("id") for step in template.checklist_template or []]
        fields = self._prepare_fields(task_data.to_template_fields(), step_ids)
        old = template_snapshot(template)
        new = {**old, **fields}
        if any(name in fields for name in SCHEDULE_FIELDS):
            self._validate_schedule(new)

        instances = self.session.exec(
            select(TaskInstance).where(TaskInstance.recurring_task_id == template.id)
        ).all()
        return new, summarize(old, new, instances, self.today())

    def preview_update(self, template_id: int, task_data: RecurringTaskUpdate) -> ChangeSummary:
        """Change summary for proposed edits; nothing is written."""
        template = self.store.get_or_raise(template_id)
        _, summary = self._summarize(template, task_data)
        return summary

    def update_template(
        self,
        template_id: int,
        task_data: RecurringTaskUpdate,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[RecurringTaskTemplate, ChangeSummary, Optional[TemplateChangeRecord], Optional[PropagationReport]]:
        """
        Edit a template and propagate the change with the requested strategy.

        The version bump and a pending change record are committed first;
        the propagation batch then commits or fails on its own.
        """
        template = self.store.get_or_raise(template_id)
        if task_data.expected_version is not None and task_data.expected_version != template.version_number:
            raise StaleTemplateError(template.id, task_data.expected_version, template.version_number)

        new, summary = self._summarize(template, task_data)
        if not summary.has_changes:
            logger.info(f"Recurring task {template.id} saved without changes")
            return template, summary, None, None

        from_version = template.version_number
        self.store.apply(template, {name: new[name] for name in summary.changed_fields})
        record = TemplateChangeRecord(
            recurring_task_id=template.id,
            recurring_task_title=template.title,
            changed_by=task_data.changed_by,
            change_type="update",
            strategy=task_data.strategy.value,
            changed_fields=summary.changed_fields,
            old_values=summary.old_values,
            new_values=summary.new_values,
            from_version=from_version,
            to_version=template.version_number,
            affected_task_count=summary.affected_instance_count,
            conflict_count=summary.conflict_count,
            propagation_status=PropagationStatus.PENDING.value,
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(template)
        self.session.refresh(record)

        logger.info(
            f"Recurring task {template.id} moved to version {template.version_number}, "
            f"changed: {', '.join(summary.changed_fields)}"
        )

        report = self.engine.propagate(template, record, task_data.strategy, self.today(), on_progress)
        self.session.refresh(template)
        self.session.refresh(record)
        return template, summary, record, report

    def delete_template(self, template_id: int) -> Tuple[int, int]:
        """
        Delete a template.

        Future instances nobody has started are removed; everything else
        is kept as history and marked as coming from a deleted template.
        Returns (removed, orphaned).
        """
        template = self.store.get_or_raise(template_id)
        today = self.today()
        title = template.title
        removed = orphaned = 0

        instances = self.session.exec(
            select(TaskInstance).where(TaskInstance.recurring_task_id == template.id)
        ).all()
        for instance in instances:
            unstarted = instance.status == TaskStatus.PENDING.value and instance.started_at is None
            if unstarted and instance.due_date is not None and instance.due_date >= today:
                self.session.delete(instance)
                removed += 1
            else:
                instance.recurring_task_id = None
                instance.is_from_deleted_recurring = True
                instance.deleted_recurring_task_title = title
                instance.pending_change_id = None
                instance.updated_at = utcnow()
                self.session.add(instance)
                orphaned += 1

        self.session.flush()
        self.store.delete(template)
        self.session.commit()
        logger.info(f"Deleted recurring task {template_id} '{title}': removed {removed}, orphaned {orphaned} instances")
        return removed, orphaned

    def regenerate(
        self,
        template_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Tuple[List[TaskInstance], date, date]:
        template = self.store.get_or_raise(template_id)
        start, end = self._window(start, end)
        instances = self.generator.generate(template, start, end)
        self.session.commit()
        return instances, start, end

    def regenerate_all(
        self,
        location: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Tuple[List[TaskInstance], int, date, date]:
        """Fill the generation window for every active template."""
        templates = self.store.list(location=location, active_only=True)
        start, end = self._window(start, end)
        instances = self.generator.generate_all(templates, start, end, location=location)
        self.session.commit()
        logger.info(f"Generated {len(instances)} instances across {len(templates)} recurring tasks")
        return instances, len(templates), start, end

    def _window(self, start: Optional[date], end: Optional[date]) -> Tuple[date, date]:
        start = start or self.today()
        end = end or start + timedelta(days=GENERATION_WINDOW_DAYS)
        if end < start:
            raise ValidationError(
                "End date must not be before start date",
                {"start_date": to_jsonable(start), "end_date": to_jsonable(end)}
            )
        return start, end

    def list_changes(
        self,
        since: Optional[datetime] = None,
        recurring_task_id: Optional[int] = None,
        limit: int = 50,
    ) -> List[TemplateChangeRecord]:
        """Recent change records, newest first."""
        statement = select(TemplateChangeRecord)
        if since is not None:
            statement = statement.where(TemplateChangeRecord.changed_at > since)
        if recurring_task_id is not None:
            statement = statement.where(TemplateChangeRecord.recurring_task_id == recurring_task_id)
        statement = statement.order_by(
            TemplateChangeRecord.changed_at.desc(), TemplateChangeRecord.id.desc()
        ).limit(limit)
        return list(self.session.exec(statement).all())
