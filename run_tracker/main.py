import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger

from run_tracker.api.admin.roster import router as admin_roster_router
from run_tracker.api.admin.runs import router as admin_runs_router
from run_tracker.api.auth import router as auth_router
from run_tracker.api.roster import router as roster_router
from run_tracker.api.runs import router as runs_router
from run_tracker.config.settings import settings
from run_tracker.core.logger import setup_logger
from run_tracker.db.models import Base
from run_tracker.db.session import get_engine


def init_db() -> None:
    """Create the ledger and roster tables if they do not exist."""
    logger.info("Ensuring database tables exist")
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Configure logging and the schema on startup.

    Note: FastAPI requires async for lifespan context manager,
    even if no await operations are used.
    """
    setup_logger(level=settings.log_level, log_file=settings.log_file, serialize_file=settings.log_json)
    init_db()
    logger.info(f"Run tracker started: timezone={settings.organization_timezone}, max_entries_per_day={settings.max_entries_per_day}, ceiling_km={settings.daily_distance_ceiling_km}")

    await asyncio.sleep(0)
    yield

    logger.info("Run tracker stopped")


app = FastAPI(title="Run Tracker", lifespan=lifespan)


app.include_router(roster_router)
app.include_router(runs_router)
app.include_router(auth_router)
app.include_router(admin_runs_router)
app.include_router(admin_roster_router)

logger.info("FastAPI application initialized")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response
