"""Tests for classifying instances against their template."""
import itertools

import pytest

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus, TERMINAL_STATUSES
from farmops.services.conflict_classifier import (
    TemplateState,
    classify,
    has_update_available,
    is_in_conflict,
)


def template(version=2):
    return RecurringTaskTemplate(id=1, title="Harvest", frequency="daily", version_number=version)


def task(status=TaskStatus.IN_PROGRESS.value, modified=True, version=1, **overrides):
    fields = {
        "id": 10,
        "title": "Harvest",
        "status": status,
        "recurring_task_id": 1,
        "template_version": version,
        "is_modified_after_creation": modified,
        "is_from_deleted_recurring": False,
    }
    fields.update(overrides)
    return TaskInstance(**fields)


STATUSES = [status.value for status in TaskStatus]


class TestTruthTable:

    @pytest.mark.parametrize(
        "status,modified,behind",
        list(itertools.product(STATUSES, [True, False], [True, False])),
    )
    def test_conflict_iff_behind_in_progress_and_modified(self, status, modified, behind):
        instance = task(status=status, modified=modified, version=1 if behind else 2)
        expected = behind and status == TaskStatus.IN_PROGRESS.value and modified
        assert is_in_conflict(instance, template()) is expected

    @pytest.mark.parametrize(
        "status,modified,behind",
        list(itertools.product(STATUSES, [True, False], [True, False])),
    )
    def test_classification(self, status, modified, behind):
        instance = task(status=status, modified=modified, version=1 if behind else 2)
        state = classify(instance, template())

        if status in TERMINAL_STATUSES or not behind:
            assert state == TemplateState.NONE
        elif status == TaskStatus.IN_PROGRESS.value and modified:
            assert state == TemplateState.CONFLICT
        else:
            assert state == TemplateState.UPDATE_AVAILABLE


class TestLinkage:

    def test_standalone_task_is_never_in_conflict(self):
        instance = task(recurring_task_id=None)
        assert classify(instance, None) == TemplateState.NONE

    def test_orphan_is_never_in_conflict(self):
        instance = task(is_from_deleted_recurring=True)
        assert is_in_conflict(instance, template()) is False
        assert classify(instance, template()) == TemplateState.NONE

    def test_other_template_does_not_count(self):
        instance = task(recurring_task_id=2)
        assert classify(instance, template()) == TemplateState.NONE


class TestAcknowledgement:

    def test_acknowledged_version_ends_conflict(self):
        instance = task(acknowledged_template_version=2)
        assert is_in_conflict(instance, template()) is False
        assert has_update_available(instance, template()) is True
        assert classify(instance, template()) == TemplateState.UPDATE_AVAILABLE

    def test_newer_template_version_reopens_conflict(self):
        instance = task(acknowledged_template_version=2)
        assert classify(instance, template(version=3)) == TemplateState.CONFLICT
