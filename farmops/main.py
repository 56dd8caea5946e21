"""Main FastAPI application for the FarmOps recurring task service."""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from farmops import __version__
from farmops.db.init import init_db
from farmops.middleware.cors import add_cors_middleware
from farmops.routers import notifications_router, recurring_tasks_router, tasks_router
from farmops.services.errors import FarmOpsError, create_error_response

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database tables on startup."""
    init_db()
    logger.info("Application startup complete.")
    yield


# Create FastAPI application
app = FastAPI(
    title="FarmOps Recurring Task API",
    description="Recurring task templates, instance generation, update propagation and conflict resolution",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
add_cors_middleware(app)


@app.exception_handler(FarmOpsError)
async def farmops_error_handler(request: Request, exc: FarmOpsError):
    """Render service errors with the standard error envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=create_error_response(exc))


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "message": "FarmOps Recurring Task API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(recurring_tasks_router, prefix="/api")  # /api/recurring-tasks
app.include_router(tasks_router, prefix="/api")  # /api/tasks
app.include_router(notifications_router, prefix="/api")  # /api/notifications


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "farmops.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        reload=os.environ.get("ENVIRONMENT", "development") == "development",
    )
