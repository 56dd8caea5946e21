"""Persistence for recurring task templates."""
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from farmops.models.recurring_task import RecurringTaskTemplate
from farmops.services.errors import NotFoundError
from farmops.utils.dates import utcnow


class TemplateStore:
    """Reads and writes RecurringTaskTemplate rows; the caller owns the commit."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, template_id: int) -> Optional[RecurringTaskTemplate]:
        return self.session.get(RecurringTaskTemplate, template_id)

    def get_or_raise(self, template_id: int) -> RecurringTaskTemplate:
        template = self.get(template_id)
        if template is None:
            raise NotFoundError("Recurring task", template_id)
        return template

    def list(self, location: Optional[str] = None, active_only: bool = False) -> List[RecurringTaskTemplate]:
        statement = select(RecurringTaskTemplate)
        if location:
            statement = statement.where(RecurringTaskTemplate.location == location)
        if active_only:
            statement = statement.where(RecurringTaskTemplate.is_active == True)  # noqa: E712
        statement = statement.order_by(RecurringTaskTemplate.title, RecurringTaskTemplate.id)
        return list(self.session.exec(statement).all())

    def create(self, fields: Dict[str, Any]) -> RecurringTaskTemplate:
        template = RecurringTaskTemplate(**fields)
        template.version_number = 1
        self.session.add(template)
        self.session.flush()
        return template

    def apply(self, template: RecurringTaskTemplate, fields: Dict[str, Any]) -> RecurringTaskTemplate:
        """Write new field values and bump the version in the same unit of work."""
        for name, value in fields.items():
            setattr(template, name, value)
        template.version_number += 1
        template.updated_at = utcnow()
        self.session.add(template)
        self.session.flush()
        return template

    def delete(self, template: RecurringTaskTemplate) -> None:
        self.session.delete(template)
        self.session.flush()
