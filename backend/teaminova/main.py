"""
TeamInova - project, task and issue tracking API.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager

from teaminova.database import init_db
from teaminova.error_reporting import build_error_reporter
from teaminova.routes import admin, issues, projects, tasks, team, views
from teaminova.exceptions import register_exception_handlers
from teaminova.logging_config import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting TeamInova API...")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down TeamInova API...")


app = FastAPI(
    title="TeamInova",
    description="Project, task and issue tracking for small teams",
    version="0.1.0",
    lifespan=lifespan,
)

# Injected error reporting collaborator
app.state.error_reporter = build_error_reporter()

# Register custom exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(projects.router, prefix="/projects", tags=["Projects"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(issues.router, prefix="/issues", tags=["Issues"])
app.include_router(team.router, prefix="/team", tags=["Team"])
app.include_router(views.router, prefix="/views", tags=["Views"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
