"""
Propagation Engine

Applies a template edit to the template's live instances using the
strategy the editor picked. update_all rewrites every affected instance
except in-progress work a user has modified, which is flagged as a
conflict instead; new_only leaves existing instances alone.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlmodel import Session, select

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance
from farmops.models.template_change import PropagationStatus, TemplateChangeRecord
from farmops.schemas.recurring_task import PropagationStrategy
from farmops.services.change_detector import is_affected, is_conflict_candidate
from farmops.services.checklist import rebuild_checklist
from farmops.services.errors import PropagationError
from farmops.services.notification_service import NotificationService
from farmops.utils.dates import utcnow
from farmops.utils.logger import propagation_logger

logger = logging.getLogger(__name__)

# Template field -> instance field; schedule and automation fields stay on the template
PROPAGATED_FIELDS = {
    "title": "title",
    "description": "description",
    "type": "type",
    "priority": "priority",
    "location": "location",
    "assigned_to": "assigned_to",
    "estimated_time": "estimated_time",
    "checklist_template": "checklist",
}


@dataclass
class PropagationProgress:
    current: int
    total: int
    stage: str


@dataclass
class PropagationReport:
    strategy: str
    status: str
    total_instances: int = 0
    processed_instances: int = 0
    updated_instances: int = 0
    conflict_count: int = 0
    progress: List[PropagationProgress] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ProgressCallback = Callable[[PropagationProgress], None]


def apply_template_fields(
    instance: TaskInstance,
    template: RecurringTaskTemplate,
    fields: Optional[Iterable[str]] = None,
) -> None:
    """
    Copy template values onto an instance.

    Status, progress, timestamps and the completion state of surviving
    checklist steps are never touched.
    """
    names = PROPAGATED_FIELDS.keys() if fields is None else [name for name in fields if name in PROPAGATED_FIELDS]
    for name in names:
        if name == "checklist_template":
            instance.checklist = rebuild_checklist(instance.checklist, template.checklist_template)
        else:
            setattr(instance, PROPAGATED_FIELDS[name], getattr(template, name))


class PropagationEngine:
    """Runs one propagation batch inside a single transaction."""

    def __init__(self, session: Session, notifications: Optional[NotificationService] = None):
        self.session = session
        self.notifications = notifications or NotificationService(session)

    def affected_instances(self, template: RecurringTaskTemplate, today: date) -> List[TaskInstance]:
        statement = (
            select(TaskInstance)
            .where(TaskInstance.recurring_task_id == template.id)
            .order_by(TaskInstance.due_date, TaskInstance.id)
        )
        return [instance for instance in self.session.exec(statement).all() if is_affected(instance, today)]

    def propagate(
        self,
        template: RecurringTaskTemplate,
        record: TemplateChangeRecord,
        strategy: PropagationStrategy,
        today: date,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PropagationReport:
        """
        Apply the change described by record to the template's instances.

        The template edit and the pending record must already be committed;
        this method commits the batch or rolls it back and marks the record
        as failed.
        """
        strategy = PropagationStrategy(strategy)
        report = PropagationReport(strategy=strategy.value, status=PropagationStatus.PENDING.value)

        def emit(current: int, total: int, stage: str) -> None:
            event = PropagationProgress(current=current, total=total, stage=stage)
            report.progress.append(event)
            if on_progress is not None:
                on_progress(event)

        if strategy == PropagationStrategy.NEW_ONLY:
            emit(0, 0, "Existing tasks unchanged; new tasks will use the updated template")
            record.affected_task_count = 0
            record.conflict_count = 0
            record.propagation_status = PropagationStatus.COMPLETED.value
            self.session.add(record)
            self.session.commit()
            report.status = record.propagation_status
            self._audit(template, record, report)
            return report

        record_id = record.id
        try:
            instances = self.affected_instances(template, today)
            total = len(instances)
            report.total_instances = total
            emit(0, total, f"Preparing to update {total} tasks")

            for index, instance in enumerate(instances, start=1):
                if is_conflict_candidate(instance):
                    self._flag_conflict(instance, template, record)
                    report.conflict_count += 1
                    stage = f"Flagged conflict on task #{instance.id}"
                else:
                    # Instances that missed an earlier edit catch up on every field
                    fields = record.changed_fields if instance.template_version >= record.from_version else None
                    apply_template_fields(instance, template, fields)
                    instance.template_version = template.version_number
                    instance.pending_change_id = None
                    instance.updated_at = utcnow()
                    self.session.add(instance)
                    report.updated_instances += 1
                    stage = f"Updated task #{instance.id}"

                self.session.flush()
                report.processed_instances = index
                emit(index, total, stage)

            record.affected_task_count = total
            record.conflict_count = report.conflict_count
            record.propagation_status = (
                PropagationStatus.COMPLETED_WITH_CONFLICTS.value
                if report.conflict_count
                else PropagationStatus.COMPLETED.value
            )
            self.session.add(record)
            emit(total, total, "Finalizing")
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            self._mark_failed(record_id, str(e))
            report.status = PropagationStatus.ERROR.value
            self._audit(template, None, report, error=str(e), change_id=record_id)
            raise PropagationError(
                f"Failed to update task instances: {str(e)}",
                {
                    "change_id": record_id,
                    "processed_instances": report.processed_instances,
                    "total_instances": report.total_instances,
                }
            ) from e

        report.status = record.propagation_status
        self._audit(template, record, report)
        return report

    def _flag_conflict(
        self,
        instance: TaskInstance,
        template: RecurringTaskTemplate,
        record: TemplateChangeRecord,
    ) -> None:
        """Leave the user's work as is and ask the assignee to resolve."""
        instance.pending_change_id = record.id
        instance.updated_at = utcnow()
        self.session.add(instance)
        self.notifications.submit(
            user_id=instance.assigned_to,
            type="template_conflict",
            title="Template update conflicts with your task",
            message=(
                f"'{template.title}' was updated ({', '.join(record.changed_fields)}) while you were "
                f"working on task #{instance.id}. Choose how to resolve the conflict."
            ),
            related_id=instance.id,
            related_type="task",
        )

    def _mark_failed(self, record_id: int, message: str) -> None:
        record = self.session.get(TemplateChangeRecord, record_id)
        if record is None:
            return
        record.propagation_status = PropagationStatus.ERROR.value
        record.error_message = message
        self.session.add(record)
        self.session.commit()

    def _audit(
        self,
        template: RecurringTaskTemplate,
        record: Optional[TemplateChangeRecord],
        report: PropagationReport,
        error: Optional[str] = None,
        change_id: Optional[int] = None,
    ) -> None:
        log = propagation_logger.error if error else propagation_logger.info
        log(
            "Template propagation finished",
            recurring_task_id=template.id,
            change_id=record.id if record is not None else change_id,
            changed_fields=record.changed_fields if record is not None else None,
            strategy=report.strategy,
            status=report.status,
            total_instances=report.total_instances,
            updated_instances=report.updated_instances,
            conflict_count=report.conflict_count,
            error=error,
        )
