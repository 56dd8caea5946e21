"""Recurring task template router."""
from fastapi import APIRouter, Depends, Query, status
from datetime import date, datetime
from typing import List, Optional

from farmops.db.config import get_session
from farmops.schemas.recurring_task import (
    ChangeSummaryResponse,
    GenerationResult,
    RecurringTaskCreate,
    RecurringTaskCreateResult,
    RecurringTaskDeleteResult,
    RecurringTaskResponse,
    RecurringTaskUpdate,
    RecurringTaskUpdateResult,
    TemplateChangeResponse,
)
from farmops.schemas.task import TaskResponse
from farmops.services.recurring_task_service import RecurringTaskService
from sqlmodel import Session

router = APIRouter(tags=["Recurring Tasks"])  # No prefix since main.py adds /api prefix


def get_recurring_task_service(session: Session = Depends(get_session)) -> RecurringTaskService:
    """Dependency for getting RecurringTaskService instance."""
    return RecurringTaskService(session)


@router.get("/recurring-tasks", response_model=List[RecurringTaskResponse])
async def list_recurring_tasks(
    service: RecurringTaskService = Depends(get_recurring_task_service),
    location: Optional[str] = Query(None, description="Only templates for this location"),
):
    """List recurring task templates."""
    return [RecurringTaskResponse.model_validate(template) for template in service.list_templates(location)]


@router.post("/recurring-tasks", response_model=RecurringTaskCreateResult, status_code=status.HTTP_201_CREATED)
async def create_recurring_task(
    task_data: RecurringTaskCreate,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Create a recurring task template and generate its upcoming instances."""
    template, instances = service.create_template(task_data)
    return RecurringTaskCreateResult(
        task=RecurringTaskResponse.model_validate(template),
        generated_instances=len(instances),
        message=f"Created recurring task \"{template.title}\" and generated {len(instances)} task instances",
    )


@router.get("/recurring-tasks/changes", response_model=List[TemplateChangeResponse])
async def list_template_changes(
    service: RecurringTaskService = Depends(get_recurring_task_service),
    since: Optional[datetime] = Query(None, description="Only changes recorded after this timestamp"),
    recurring_task_id: Optional[int] = Query(None, description="Only changes to this template"),
    limit: int = Query(50, ge=1, le=500),
):
    """Recent template changes, polled by the UI for update notifications."""
    records = service.list_changes(since=since, recurring_task_id=recurring_task_id, limit=limit)
    return [TemplateChangeResponse.model_validate(record) for record in records]


@router.post("/recurring-tasks/regenerate-all", response_model=GenerationResult)
async def regenerate_all_recurring_tasks(
    service: RecurringTaskService = Depends(get_recurring_task_service),
    location: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="First day to generate (defaults to today)"),
    end_date: Optional[date] = Query(None, description="Last day to generate"),
):
    """Fill the generation window for every active template."""
    instances, templates_processed, start, end = service.regenerate_all(location, start_date, end_date)
    return GenerationResult(
        generated_instances=len(instances),
        templates_processed=templates_processed,
        start_date=start,
        end_date=end,
    )


@router.get("/recurring-tasks/{recurring_task_id}", response_model=RecurringTaskResponse)
async def get_recurring_task(
    recurring_task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Get a single recurring task template."""
    return RecurringTaskResponse.model_validate(service.get_template(recurring_task_id))


@router.get("/recurring-tasks/{recurring_task_id}/instances", response_model=List[TaskResponse])
async def list_recurring_task_instances(
    recurring_task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Task instances still linked to a template."""
    return [TaskResponse.model_validate(task) for task in service.list_instances(recurring_task_id)]


@router.post("/recurring-tasks/{recurring_task_id}/impact", response_model=ChangeSummaryResponse)
async def preview_recurring_task_update(
    recurring_task_id: int,
    task_data: RecurringTaskUpdate,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Show which fields an edit changes and how many instances it reaches, without saving."""
    return service.preview_update(recurring_task_id, task_data).to_dict()


@router.patch("/recurring-tasks/{recurring_task_id}", response_model=RecurringTaskUpdateResult)
@router.put("/recurring-tasks/{recurring_task_id}", response_model=RecurringTaskUpdateResult)
async def update_recurring_task(
    recurring_task_id: int,
    task_data: RecurringTaskUpdate,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Edit a template and propagate the change using the requested strategy."""
    template, summary, record, report = service.update_template(recurring_task_id, task_data)
    return RecurringTaskUpdateResult(
        task=RecurringTaskResponse.model_validate(template),
        changes=summary.to_dict(),
        change_record=TemplateChangeResponse.model_validate(record) if record is not None else None,
        report=report.to_dict() if report is not None else None,
    )


@router.delete("/recurring-tasks/{recurring_task_id}", response_model=RecurringTaskDeleteResult)
async def delete_recurring_task(
    recurring_task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
):
    """Delete a template, removing unstarted future instances and keeping history."""
    removed, orphaned = service.delete_template(recurring_task_id)
    return RecurringTaskDeleteResult(
        message="Recurring task deleted successfully",
        removed_instances=removed,
        orphaned_instances=orphaned,
    )


@router.post("/recurring-tasks/{recurring_task_id}/regenerate", response_model=GenerationResult)
async def regenerate_recurring_task(
    recurring_task_id: int,
    service: RecurringTaskService = Depends(get_recurring_task_service),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """Create any instances missing from the window for one template."""
    instances, start, end = service.regenerate(recurring_task_id, start_date, end_date)
    return GenerationResult(
        generated_instances=len(instances),
        templates_processed=1,
        start_date=start,
        end_date=end,
    )
