"""
Resolution Handler

Records what a user decided about a conflicted task instance and applies
the effect. Each action is safe to repeat.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from sqlmodel import Session

from farmops.models.conflict_resolution import ConflictResolution
from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance
from farmops.schemas.task import ResolutionAction
from farmops.services.conflict_classifier import TemplateState, classify
from farmops.services.errors import ConflictResolutionError, NotFoundError
from farmops.services.notification_service import NotificationService
from farmops.services.propagation_engine import apply_template_fields
from farmops.utils.dates import utcnow
from farmops.utils.logger import resolution_logger

logger = logging.getLogger(__name__)

RESOLUTION_MESSAGES = {
    ResolutionAction.KEEP_CURRENT: "Kept your version of the task",
    ResolutionAction.APPLY_TEMPLATE: "Applied the latest template to the task",
    ResolutionAction.MANUAL_MERGE: "Flagged the task for manager review",
    ResolutionAction.DEFER: "Resolution deferred",
}


class ResolutionHandler:
    """Applies keep_current / apply_template / manual_merge / defer."""

    def __init__(self, session: Session, notifications: Optional[NotificationService] = None):
        self.session = session
        self.notifications = notifications or NotificationService(session)

    def _load(self, task_id: int) -> Tuple[TaskInstance, Optional[RecurringTaskTemplate]]:
        instance = self.session.get(TaskInstance, task_id)
        if instance is None:
            raise NotFoundError("Task", task_id)
        template = None
        if instance.recurring_task_id is not None and not instance.is_from_deleted_recurring:
            template = self.session.get(RecurringTaskTemplate, instance.recurring_task_id)
        return instance, template

    def resolve(
        self,
        task_id: int,
        action: ResolutionAction,
        notes: Optional[str] = None,
        template_changes: Any = None,
        resolved_by: Optional[int] = None,
    ) -> Tuple[TaskInstance, ConflictResolution, TemplateState]:
        """
        Apply one resolution decision and write its audit entry.

        Returns the instance, the audit row and the instance's standing
        against its template afterwards.
        """
        action = ResolutionAction(action)
        instance, template = self._load(task_id)

        if template is None and action in (ResolutionAction.APPLY_TEMPLATE, ResolutionAction.MANUAL_MERGE):
            raise ConflictResolutionError(
                "Task is no longer linked to a recurring task template",
                {"task_id": task_id, "action": action.value}
            )

        from_version = instance.template_version
        change_id = instance.pending_change_id

        try:
            if action == ResolutionAction.KEEP_CURRENT:
                self._keep_current(instance, template)
            elif action == ResolutionAction.APPLY_TEMPLATE:
                self._apply_template(instance, template)
            elif action == ResolutionAction.MANUAL_MERGE:
                self._request_manual_merge(instance, template, notes, resolved_by)

            resolution = ConflictResolution(
                task_id=instance.id,
                recurring_task_id=template.id if template is not None else None,
                change_id=change_id,
                action=action.value,
                notes=notes,
                template_changes=self._context(template_changes),
                resolved_by=resolved_by,
                from_version=from_version,
                to_version=instance.template_version,
            )
            self.session.add(resolution)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Failed to resolve conflict on task {task_id}: {str(e)}")
            raise ConflictResolutionError(
                "Failed to resolve conflict. Please try again.",
                {"task_id": task_id, "action": action.value}
            ) from e

        self.session.refresh(instance)
        state = classify(instance, template)
        resolution_logger.info(
            "Conflict resolution recorded",
            task_id=instance.id,
            recurring_task_id=resolution.recurring_task_id,
            change_id=change_id,
            action=action.value,
            notes=notes,
            template_changes=resolution.template_changes,
            resolved_by=resolved_by,
            from_version=from_version,
            to_version=instance.template_version,
            template_state=state.value,
        )
        return instance, resolution, state

    def _keep_current(self, instance: TaskInstance, template: Optional[RecurringTaskTemplate]) -> None:
        # template_version stays behind on purpose; the acknowledgement ends the conflict
        if template is not None:
            instance.acknowledged_template_version = template.version_number
        instance.pending_change_id = None
        instance.needs_manager_review = False
        instance.updated_at = utcnow()
        self.session.add(instance)

    def _apply_template(self, instance: TaskInstance, template: RecurringTaskTemplate) -> None:
        apply_template_fields(instance, template)
        instance.template_version = template.version_number
        instance.is_modified_after_creation = False
        instance.pending_change_id = None
        instance.needs_manager_review = False
        instance.updated_at = utcnow()
        self.session.add(instance)

    def _request_manual_merge(
        self,
        instance: TaskInstance,
        template: RecurringTaskTemplate,
        notes: Optional[str],
        resolved_by: Optional[int],
    ) -> None:
        already_flagged = instance.needs_manager_review
        instance.needs_manager_review = True
        instance.updated_at = utcnow()
        self.session.add(instance)
        if already_flagged:
            return

        message = (
            f"Task #{instance.id} '{instance.title}' conflicts with version "
            f"{template.version_number} of '{template.title}' and needs a manual merge."
        )
        if notes:
            message += f" Notes: {notes}"
        self.notifications.submit(
            user_id=template.created_by if template.created_by is not None else resolved_by,
            type="template_manual_review",
            title="Task needs manual review",
            message=message,
            related_id=instance.id,
            related_type="task",
        )

    @staticmethod
    def _context(template_changes: Any) -> Optional[Dict[str, Any]]:
        if template_changes is None or isinstance(template_changes, dict):
            return template_changes
        return {"changes": template_changes}
