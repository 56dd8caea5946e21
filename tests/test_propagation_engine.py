"""Tests for propagating template edits to existing instances."""
import pytest
from sqlmodel import select

from farmops.models.notification import Notification
from farmops.models.task import TaskInstance, TaskStatus
from farmops.models.template_change import PropagationStatus, TemplateChangeRecord
from farmops.schemas.recurring_task import RecurringTaskUpdate
from farmops.schemas.task import ChecklistItemUpdate, TaskUpdate
from farmops.services.conflict_classifier import TemplateState, classify
from farmops.services.errors import PropagationError
from farmops.services.task_service import TaskService


@pytest.fixture
def seeded(make_template, make_instance):
    """Ten live instances, two of them in progress with user edits, plus a completed one."""
    template = make_template()
    live = [make_instance(template, offset) for offset in range(8)]
    conflicted = [
        make_instance(template, offset, TaskStatus.IN_PROGRESS.value, modified=True, title="Seeding (moved)")
        for offset in (1, 2)
    ]
    completed = make_instance(template, 3, TaskStatus.COMPLETED.value)
    return template, live, conflicted, completed


def reload(session, instance):
    return session.get(TaskInstance, instance.id)


class TestUpdateAll:

    def test_priority_reaches_every_unconflicted_instance(self, session, service, seeded):
        template, live, conflicted, completed = seeded

        _, summary, record, report = service.update_template(template.id, RecurringTaskUpdate(priority="high"))

        assert summary.affected_instance_count == 10
        assert summary.conflict_count == 2
        assert report.updated_instances == 8
        assert report.conflict_count == 2
        assert record.propagation_status == PropagationStatus.COMPLETED_WITH_CONFLICTS.value
        assert record.affected_task_count == 10
        assert record.from_version == 1
        assert record.to_version == 2
        for instance in live:
            instance = reload(session, instance)
            assert instance.priority == "high"
            assert instance.template_version == 2

    def test_conflicted_instances_are_flagged_not_overwritten(self, session, service, seeded):
        template, _, conflicted, _ = seeded

        _, _, record, _ = service.update_template(template.id, RecurringTaskUpdate(priority="high"))

        for instance in conflicted:
            instance = reload(session, instance)
            assert instance.priority == "medium"
            assert instance.title == "Seeding (moved)"
            assert instance.template_version == 1
            assert instance.pending_change_id == record.id

        notifications = session.exec(select(Notification).where(Notification.type == "template_conflict")).all()
        assert sorted(n.related_id for n in notifications) == sorted(i.id for i in conflicted)
        assert {n.user_id for n in notifications} == {7}

    def test_terminal_instances_are_untouched(self, session, service, seeded):
        template, _, _, completed = seeded
        before = completed.model_dump()

        service.update_template(template.id, RecurringTaskUpdate(priority="high", title="Seeding"))

        session.expire_all()
        assert reload(session, completed).model_dump() == before

    def test_checklist_change_keeps_completed_steps(self, session, service, make_template, make_instance):
        template = make_template()
        instance = make_instance(template, 1, TaskStatus.IN_PROGRESS.value)
        TaskService(session).update_task(instance.id, TaskUpdate(checklist=[ChecklistItemUpdate(id="step-1", completed=True)]))

        steps = [
            {"id": "step-1", "type": "instruction", "text": "Sanitize trays"},
            {"id": "step-2", "type": "inventory-select", "text": "Pick seed lot", "inventory_category": "seeds"},
            {"id": "step-3", "type": "photo", "text": "Photograph trays"},
        ]
        service.update_template(template.id, RecurringTaskUpdate(checklist_template=steps))

        instance = reload(session, instance)
        assert instance.status == TaskStatus.IN_PROGRESS.value
        assert instance.is_modified_after_creation is False
        assert [item["id"] for item in instance.checklist] == ["step-1", "step-2", "step-3"]
        assert [item["completed"] for item in instance.checklist] == [True, False, False]
        assert instance.checklist[2]["type"] == "photo"

    def test_new_first_step_gets_a_fresh_id(self, session, service, make_template, make_instance):
        template = make_template()
        instance = make_instance(template, 1, TaskStatus.IN_PROGRESS.value)
        TaskService(session).update_task(instance.id, TaskUpdate(checklist=[ChecklistItemUpdate(id="step-1", completed=True)]))

        steps = [{"type": "instruction", "text": "Put on gloves"}] + template.checklist_template
        updated, _, _, _ = service.update_template(template.id, RecurringTaskUpdate(checklist_template=steps))

        assert [step["id"] for step in updated.checklist_template] == ["step-4", "step-1", "step-2", "step-3"]
        instance = reload(session, instance)
        assert [item["id"] for item in instance.checklist] == ["step-4", "step-1", "step-2", "step-3"]
        assert [item["completed"] for item in instance.checklist] == [False, True, False, False]

    def test_removed_step_id_is_not_reused(self, session, service, make_template, make_instance):
        template = make_template()
        instance = make_instance(template, 1, TaskStatus.IN_PROGRESS.value)
        TaskService(session).update_task(instance.id, TaskUpdate(checklist=[ChecklistItemUpdate(id="step-3", completed=True)]))

        steps = template.checklist_template[:2] + [{"type": "photo", "text": "Photograph trays"}]
        service.update_template(template.id, RecurringTaskUpdate(checklist_template=steps))

        instance = reload(session, instance)
        assert [item["id"] for item in instance.checklist] == ["step-1", "step-2", "step-4"]
        assert [item["completed"] for item in instance.checklist] == [False, False, False]

    def test_only_changed_fields_are_written(self, session, service, make_template, make_instance):
        template = make_template()
        instance = make_instance(template, 1, notes="bring gloves", description="Custom description")

        service.update_template(template.id, RecurringTaskUpdate(priority="low"))

        instance = reload(session, instance)
        assert instance.priority == "low"
        assert instance.description == "Custom description"
        assert instance.notes == "bring gloves"

    def test_progress_is_reported(self, service, make_template, make_instance):
        template = make_template()
        for offset in range(3):
            make_instance(template, offset)
        events = []

        service.update_template(template.id, RecurringTaskUpdate(priority="high"), on_progress=events.append)

        assert [(event.current, event.total) for event in events] == [(0, 3), (1, 3), (2, 3), (3, 3), (3, 3)]
        assert events[-1].stage == "Finalizing"

    def test_record_without_conflicts_is_completed(self, service, make_template, make_instance):
        template = make_template()
        make_instance(template, 1)

        _, _, record, report = service.update_template(template.id, RecurringTaskUpdate(priority="high"))

        assert record.propagation_status == PropagationStatus.COMPLETED.value
        assert report.status == PropagationStatus.COMPLETED.value


class TestNewOnly:

    def test_existing_instances_keep_their_version(self, session, service, seeded):
        template, live, conflicted, _ = seeded

        updated, _, record, report = service.update_template(
            template.id, RecurringTaskUpdate(priority="high", strategy="new_only")
        )

        assert updated.version_number == 2
        assert record.affected_task_count == 0
        assert record.conflict_count == 0
        assert record.propagation_status == PropagationStatus.COMPLETED.value
        assert report.updated_instances == 0
        for instance in live + conflicted:
            instance = reload(session, instance)
            assert instance.template_version == 1
            assert instance.pending_change_id is None
        assert session.exec(select(Notification)).all() == []

    def test_new_instances_use_the_new_version(self, session, service, make_template):
        template = make_template(frequency="daily", days_of_week=None)
        service.update_template(template.id, RecurringTaskUpdate(priority="high", strategy="new_only"))

        created, _, _ = service.regenerate(template.id)

        assert created
        assert {(i.template_version, i.priority) for i in created} == {(2, "high")}


    def test_later_update_all_catches_up_on_skipped_edit(self, session, service, make_template, make_instance):
        template = make_template()
        instance = make_instance(template, 1)

        service.update_template(template.id, RecurringTaskUpdate(title="Renamed", strategy="new_only"))
        assert classify(reload(session, instance), service.get_template(template.id)) == TemplateState.UPDATE_AVAILABLE

        updated, _, _, _ = service.update_template(template.id, RecurringTaskUpdate(priority="high"))

        instance = reload(session, instance)
        assert updated.version_number == 3
        assert instance.template_version == 3
        assert instance.title == "Renamed"
        assert instance.priority == "high"
        assert classify(instance, updated) == TemplateState.NONE


class TestFailure:

    def test_batch_is_rolled_back_and_record_marked(self, session, service, monkeypatch, make_template, make_instance):
        template = make_template()
        instances = [make_instance(template, offset) for offset in range(3)]
        calls = []

        def flaky(instance, template, fields=None):
            calls.append(instance.id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            instance.priority = template.priority

        monkeypatch.setattr("farmops.services.propagation_engine.apply_template_fields", flaky)

        with pytest.raises(PropagationError) as excinfo:
            service.update_template(template.id, RecurringTaskUpdate(priority="high"))

        assert excinfo.value.code == "PROPAGATION_ERROR"
        session.expire_all()
        for instance in instances:
            instance = reload(session, instance)
            assert instance.priority == "medium"
            assert instance.template_version == 1

        record = session.exec(select(TemplateChangeRecord)).one()
        assert record.propagation_status == PropagationStatus.ERROR.value
        assert "disk full" in record.error_message
        assert excinfo.value.details["change_id"] == record.id
