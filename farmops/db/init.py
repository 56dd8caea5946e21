"""Initialize database tables."""
import logging

from sqlmodel import SQLModel

from farmops.db.config import engine
from farmops.models import (  # noqa: F401  registers tables on the metadata
    ConflictResolution,
    Notification,
    RecurringTaskTemplate,
    TaskInstance,
    TemplateChangeRecord,
)

logger = logging.getLogger(__name__)


def init_db():
    """Create all tables in the database."""
    logger.info("[DB INIT] Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("[DB INIT] Tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
