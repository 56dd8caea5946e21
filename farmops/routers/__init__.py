"""Routers package for the recurring task API."""

from .notifications import router as notifications_router
from .recurring_tasks import router as recurring_tasks_router
from .tasks import router as tasks_router

__all__ = ["notifications_router", "recurring_tasks_router", "tasks_router"]
