"""Task instance router."""
from fastapi import APIRouter, Depends, Query
from datetime import date
from typing import List, Optional

from farmops.db.config import get_session
from farmops.models.task import TaskInstance
from farmops.schemas.task import (
    ConflictResolutionResult,
    ResolveConflictRequest,
    TaskResponse,
    TaskStatusChange,
    TaskUpdate,
    TaskWithTemplateState,
)
from farmops.services.conflict_classifier import TemplateState
from farmops.services.resolution_handler import RESOLUTION_MESSAGES, ResolutionHandler
from farmops.services.task_service import TaskService
from sqlmodel import Session

router = APIRouter(tags=["Tasks"])  # No prefix since main.py adds /api prefix


def get_task_service(session: Session = Depends(get_session)) -> TaskService:
    """Dependency for getting TaskService instance."""
    return TaskService(session)


def get_resolution_handler(session: Session = Depends(get_session)) -> ResolutionHandler:
    return ResolutionHandler(session)


def with_state(task: TaskInstance, state: TemplateState, current_version: Optional[int]) -> TaskWithTemplateState:
    return TaskWithTemplateState(
        **TaskResponse.model_validate(task).model_dump(),
        template_state=state.value,
        current_template_version=current_version,
    )


@router.get("/tasks", response_model=List[TaskResponse])
async def list_tasks(
    service: TaskService = Depends(get_task_service),
    location: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="pending, in_progress, completed, paused, skipped, approved"),
    date_from: Optional[date] = Query(None, description="Task date >= this date"),
    date_to: Optional[date] = Query(None, description="Task date <= this date"),
    recurring_task_id: Optional[int] = Query(None),
):
    """List task instances."""
    tasks = service.list_tasks(
        location=location,
        status=status,
        date_from=date_from,
        date_to=date_to,
        recurring_task_id=recurring_task_id,
    )
    return [TaskResponse.model_validate(task) for task in tasks]


@router.get("/tasks/with-template-updates", response_model=List[TaskWithTemplateState])
async def list_tasks_with_template_updates(
    service: TaskService = Depends(get_task_service),
):
    """Tasks that were modified by users or lag behind their template version."""
    return [with_state(task, state, version) for task, state, version in service.with_template_updates()]


@router.get("/tasks/{task_id}", response_model=TaskWithTemplateState)
async def get_task(
    task_id: int,
    service: TaskService = Depends(get_task_service),
):
    """Get a task and its standing against its template."""
    task = service.get_or_raise(task_id)
    state, version = service.template_state(task)
    return with_state(task, state, version)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Record a user's edits, checklist progress or captured data."""
    return TaskResponse.model_validate(service.update_task(task_id, task_data))


@router.post("/tasks/{task_id}/status", response_model=TaskResponse)
async def change_task_status(
    task_id: int,
    status_change: TaskStatusChange,
    service: TaskService = Depends(get_task_service),
):
    """Start, pause, complete, skip or approve a task."""
    task = service.change_status(task_id, status_change.status, status_change.reason)
    return TaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/resolve-conflict", response_model=ConflictResolutionResult)
async def resolve_conflict(
    task_id: int,
    resolution: ResolveConflictRequest,
    handler: ResolutionHandler = Depends(get_resolution_handler),
):
    """Apply the user's decision for a task that conflicts with a template update."""
    task, record, state = handler.resolve(
        task_id,
        resolution.action,
        notes=resolution.notes,
        template_changes=resolution.template_changes,
        resolved_by=resolution.resolved_by,
    )
    return ConflictResolutionResult(
        task=TaskResponse.model_validate(task),
        action=resolution.action,
        template_state=state.value,
        resolution_id=record.id,
        message=RESOLUTION_MESSAGES[resolution.action],
    )
