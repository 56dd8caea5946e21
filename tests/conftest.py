"""
Pytest fixtures for the recurring task service.

Every test gets its own in-memory SQLite database and a fixed "today"
so schedules and due-date filters are deterministic.
"""
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import farmops.models  # noqa: F401  registers tables
from farmops.db.config import enable_sqlite_foreign_keys, get_session
from farmops.main import app
from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.models.task import TaskInstance, TaskStatus
from farmops.services.checklist import build_checklist, normalize_steps
from farmops.services.recurring_task_service import RecurringTaskService

# A Monday
TODAY = date(2026, 3, 2)

SEEDING_STEPS = [
    {"type": "instruction", "text": "Sanitize trays"},
    {"type": "inventory-select", "text": "Pick seed lot", "inventory_category": "seeds"},
    {"type": "data-capture", "text": "Record germination", "label": "Germination %", "data_type": "number"},
]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def today(monkeypatch):
    """Pin the farm's current date for every service built during the test."""
    monkeypatch.setattr("farmops.services.recurring_task_service.farm_today", lambda: TODAY)
    return TODAY


@pytest.fixture
def service(session, today):
    return RecurringTaskService(session)


@pytest.fixture
def client(session, today):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_template(session):
    """Insert a template directly, bypassing generation."""

    def factory(**overrides) -> RecurringTaskTemplate:
        fields = {
            "title": "Daily Seeding Check",
            "description": "Check seeding racks",
            "type": "seeding-microgreens",
            "location": "Grow Room A",
            "priority": "medium",
            "assigned_to": 7,
            "created_by": 1,
            "frequency": "weekly",
            "days_of_week": ["monday", "wednesday", "friday"],
            "checklist_template": normalize_steps(SEEDING_STEPS),
            "automation": {"generate_trays": False, "flow_stages": []},
        }
        fields.update(overrides)
        template = RecurringTaskTemplate(**fields)
        session.add(template)
        session.commit()
        session.refresh(template)
        return template

    return factory


@pytest.fixture
def make_instance(session):
    """Insert an instance linked to a template."""

    def factory(
        template: RecurringTaskTemplate,
        offset: int = 0,
        status: str = TaskStatus.PENDING.value,
        modified: bool = False,
        **overrides,
    ) -> TaskInstance:
        task_date = TODAY + timedelta(days=offset)
        fields = {
            "title": template.title,
            "description": template.description,
            "type": template.type,
            "status": status,
            "priority": template.priority,
            "location": template.location,
            "assigned_to": template.assigned_to,
            "task_date": task_date,
            "due_date": task_date,
            "recurring_task_id": template.id,
            "frequency": template.frequency,
            "template_version": template.version_number,
            "is_modified_after_creation": modified,
            "checklist": build_checklist(template.checklist_template),
            "data": {},
        }
        if status in (TaskStatus.IN_PROGRESS.value, TaskStatus.COMPLETED.value):
            fields["started_at"] = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
        if status == TaskStatus.COMPLETED.value:
            fields["completed_at"] = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
            fields["progress"] = 100
        if modified:
            fields["modified_from_template_at"] = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
        fields.update(overrides)
        instance = TaskInstance(**fields)
        session.add(instance)
        session.commit()
        session.refresh(instance)
        return instance

    return factory
