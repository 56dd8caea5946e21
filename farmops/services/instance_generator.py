"""Expand recurring task templates into concrete task instances."""
import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from sqlmodel import Session, select

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus
from farmops.services.checklist import build_checklist
from farmops.services.schedule_validator import ScheduleValidator
from farmops.utils.dates import (
    GENERATION_WINDOW_DAYS,
    farm_today,
    iter_days,
    last_day_of_month,
    utcnow,
    weekday_name,
)

logger = logging.getLogger(__name__)

# Days between the day a task appears and the day it is due
DUE_OFFSETS = {
    "daily": 0,
    "weekly": 6,
    "bi-weekly": 13,
    "monthly": 0,
}


def occurrences(template: RecurringTaskTemplate, start: date, end: date) -> List[Tuple[date, date]]:
    """
    Return (task_date, due_date) pairs on which the schedule rule fires.

    Monthly schedules fire on the last calendar day of each month; the
    template's day_of_month is not consulted.
    """
    frequency = ScheduleValidator.normalize_frequency(template.frequency)
    if frequency not in DUE_OFFSETS:
        logger.warning(f"Unsupported frequency '{template.frequency}' on recurring task {template.id}")
        return []

    days = set(ScheduleValidator.normalize_days(template.days_of_week) or [])
    due_offset = timedelta(days=DUE_OFFSETS[frequency])
    result = []

    for day in iter_days(start, end):
        if frequency == "daily":
            fires = True
        elif frequency == "weekly":
            fires = weekday_name(day) in days
        elif frequency == "bi-weekly":
            anchor = template.start_date
            fires = anchor is not None and day >= anchor and (day - anchor).days % 14 == 0
        else:
            fires = day == last_day_of_month(day)

        if fires:
            result.append((day, day + due_offset))

    return result


class InstanceGenerator:
    """Creates TaskInstance rows for the days a template's schedule matches."""

    def __init__(self, session: Session):
        self.session = session

    def _existing_dates(self, template_id: int, start: date, end: date) -> set:
        statement = (
            select(TaskInstance.task_date)
            .where(TaskInstance.recurring_task_id == template_id)
            .where(TaskInstance.task_date >= start)
            .where(TaskInstance.task_date <= end)
        )
        return set(self.session.exec(statement).all())

    def build_instance(self, template: RecurringTaskTemplate, task_date: date, due_date: date) -> TaskInstance:
        """Copy the template's blueprint into a fresh pending instance."""
        now = utcnow()
        return TaskInstance(
            title=template.title,
            description=template.description,
            type=template.type,
            status=TaskStatus.PENDING.value,
            priority=template.priority,
            location=template.location,
            assigned_to=template.assigned_to,
            created_by=template.created_by,
            estimated_time=template.estimated_time,
            task_date=task_date,
            due_date=due_date,
            recurring_task_id=template.id,
            frequency=ScheduleValidator.normalize_frequency(template.frequency),
            template_version=template.version_number,
            is_modified_after_creation=False,
            progress=0,
            checklist=build_checklist(template.checklist_template),
            data={},
            created_at=now,
            updated_at=now,
        )

    def generate(
        self,
        template: RecurringTaskTemplate,
        start: date,
        end: date,
        location: Optional[str] = None,
    ) -> List[TaskInstance]:
        """
        Create the instances missing from [start, end] for one template.

        Days that already have an instance linked to the template are skipped,
        so repeated calls over the same range create nothing new.
        """
        if not template.is_active:
            logger.info(f"Recurring task {template.id} is inactive, nothing generated")
            return []
        if location and template.location != location:
            return []
        if end < start:
            return []

        existing = self._existing_dates(template.id, start, end)
        created = []
        for task_date, due_date in occurrences(template, start, end):
            if task_date in existing:
                continue
            instance = self.build_instance(template, task_date, due_date)
            self.session.add(instance)
            created.append(instance)

        self.session.flush()
        logger.info(
            f"Generated {len(created)} instances for recurring task {template.id} "
            f"'{template.title}' between {start.isoformat()} and {end.isoformat()}"
        )
        return created

    def generate_window(self, template: RecurringTaskTemplate, today: Optional[date] = None) -> List[TaskInstance]:
        """Fill the rolling generation window that starts today."""
        start = today or farm_today()
        end = start + timedelta(days=GENERATION_WINDOW_DAYS)
        return self.generate(template, start, end)

    def generate_all(
        self,
        templates: List[RecurringTaskTemplate],
        start: date,
        end: date,
        location: Optional[str] = None,
    ) -> List[TaskInstance]:
        created = []
        for template in templates:
            created.extend(self.generate(template, start, end, location=location))
        return created
