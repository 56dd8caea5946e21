"""Tests for resolving conflicts between user edits and template updates."""
import pytest
from sqlmodel import select

from farmops.models.conflict_resolution import ConflictResolution
from farmops.models.notification import Notification
from farmops.models.task import TaskInstance, TaskStatus
from farmops.schemas.recurring_task import RecurringTaskUpdate
from farmops.schemas.task import ResolutionAction
from farmops.services.conflict_classifier import TemplateState
from farmops.services.errors import ConflictResolutionError, NotFoundError
from farmops.services.resolution_handler import ResolutionHandler


@pytest.fixture
def conflict(session, service, make_template, make_instance):
    """An in-progress, user-edited task that a priority and title edit could not overwrite."""
    template = make_template()
    instance = make_instance(
        template, 1, TaskStatus.IN_PROGRESS.value, modified=True, title="Seeding, rack 3 only"
    )
    template, _, record, _ = service.update_template(
        template.id, RecurringTaskUpdate(priority="high", title="Seeding Check")
    )
    instance = session.get(TaskInstance, instance.id)
    assert instance.pending_change_id == record.id
    return template, instance, record


@pytest.fixture
def handler(session):
    return ResolutionHandler(session)


class TestKeepCurrent:

    def test_user_values_stay_and_conflict_ends(self, handler, conflict):
        template, instance, _ = conflict

        task, resolution, state = handler.resolve(instance.id, ResolutionAction.KEEP_CURRENT, resolved_by=7)

        assert task.title == "Seeding, rack 3 only"
        assert task.priority == "medium"
        assert task.template_version == 1
        assert task.acknowledged_template_version == template.version_number
        assert task.pending_change_id is None
        assert state == TemplateState.UPDATE_AVAILABLE
        assert resolution.action == "keep_current"
        assert (resolution.from_version, resolution.to_version) == (1, 1)

    def test_repeating_is_harmless(self, session, handler, conflict):
        _, instance, _ = conflict
        handler.resolve(instance.id, ResolutionAction.KEEP_CURRENT)
        task, _, state = handler.resolve(instance.id, ResolutionAction.KEEP_CURRENT)

        assert state == TemplateState.UPDATE_AVAILABLE
        assert task.title == "Seeding, rack 3 only"
        assert len(session.exec(select(ConflictResolution)).all()) == 2


class TestApplyTemplate:

    def test_template_values_replace_user_edits(self, handler, conflict):
        template, instance, record = conflict

        task, resolution, state = handler.resolve(instance.id, ResolutionAction.APPLY_TEMPLATE)

        assert task.title == "Seeding Check"
        assert task.priority == "high"
        assert task.template_version == template.version_number
        assert task.is_modified_after_creation is False
        assert task.pending_change_id is None
        assert task.status == TaskStatus.IN_PROGRESS.value
        assert state == TemplateState.NONE
        assert resolution.change_id == record.id
        assert (resolution.from_version, resolution.to_version) == (1, 2)

    def test_no_longer_listed_as_conflicted(self, session, handler, conflict):
        from farmops.services.task_service import TaskService

        _, instance, _ = conflict
        handler.resolve(instance.id, ResolutionAction.APPLY_TEMPLATE)

        assert TaskService(session).with_template_updates() == []


class TestManualMerge:

    def test_manager_is_notified_once(self, session, handler, conflict):
        _, instance, _ = conflict

        task, _, state = handler.resolve(
            instance.id, ResolutionAction.MANUAL_MERGE, notes="Rack 3 needs the old mix", resolved_by=7
        )
        handler.resolve(instance.id, ResolutionAction.MANUAL_MERGE, resolved_by=7)

        assert task.needs_manager_review is True
        assert state == TemplateState.CONFLICT
        reviews = session.exec(
            select(Notification).where(Notification.type == "template_manual_review")
        ).all()
        assert len(reviews) == 1
        assert reviews[0].user_id == 1
        assert reviews[0].related_id == instance.id
        assert "Rack 3 needs the old mix" in reviews[0].message

    @pytest.mark.parametrize("action", [ResolutionAction.APPLY_TEMPLATE, ResolutionAction.KEEP_CURRENT])
    def test_later_resolution_clears_review_flag(self, handler, conflict, action):
        _, instance, _ = conflict
        handler.resolve(instance.id, ResolutionAction.MANUAL_MERGE, resolved_by=7)

        task, _, _ = handler.resolve(instance.id, action, resolved_by=1)

        assert task.needs_manager_review is False


class TestDefer:

    def test_nothing_changes_but_audit_is_written(self, session, handler, conflict):
        _, instance, record = conflict

        task, resolution, state = handler.resolve(
            instance.id, ResolutionAction.DEFER, template_changes=["priority", "title"]
        )

        assert state == TemplateState.CONFLICT
        assert task.pending_change_id == record.id
        assert task.title == "Seeding, rack 3 only"
        assert resolution.template_changes == {"changes": ["priority", "title"]}


class TestErrors:

    def test_unknown_task(self, handler):
        with pytest.raises(NotFoundError):
            handler.resolve(999, ResolutionAction.KEEP_CURRENT)

    @pytest.mark.parametrize("action", [ResolutionAction.APPLY_TEMPLATE, ResolutionAction.MANUAL_MERGE])
    def test_standalone_task_cannot_take_template(self, handler, make_template, make_instance, action):
        template = make_template()
        standalone = make_instance(template, 1, recurring_task_id=None)

        with pytest.raises(ConflictResolutionError):
            handler.resolve(standalone.id, action)

    def test_keep_current_on_standalone_task_is_allowed(self, handler, make_template, make_instance):
        template = make_template()
        standalone = make_instance(template, 1, recurring_task_id=None)

        _, _, state = handler.resolve(standalone.id, ResolutionAction.KEEP_CURRENT)

        assert state == TemplateState.NONE

    def test_write_failure_is_reported(self, session, handler, conflict, monkeypatch):
        _, instance, _ = conflict

        def broken(*args, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr("farmops.services.resolution_handler.apply_template_fields", broken)

        with pytest.raises(ConflictResolutionError) as excinfo:
            handler.resolve(instance.id, ResolutionAction.APPLY_TEMPLATE)

        assert excinfo.value.message == "Failed to resolve conflict. Please try again."
        assert session.exec(select(ConflictResolution)).all() == []
