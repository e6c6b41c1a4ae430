# roboshop/main.py
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roboshop.api import google_calendar
from roboshop.core.config import DATABASE_URL, LOG_LEVEL, MAINTENANCE_REMINDERS_ENABLED
from roboshop.core.database import create_tables
from roboshop.core.errors import (
    ConflictError,
    ConsistencyError,
    ExternalServiceError,
    NotFoundError,
    RoboshopError,
    ValidationError,
)
from roboshop.integrations.google_calendar import CalendarClientProvider
from roboshop.integrations.notifications import EmailNotifier
from roboshop.repositories import SqlUnitOfWork
from roboshop.services.reconciliation import CalendarSyncExecutor, ReconciliationOrchestrator
from roboshop.services.reminders import run_reminder_loop

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Robot Shop API",
    description="Rentals, maintenance and installations mirrored to Google Calendar",
    version="1.0.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(google_calendar.router)

app.state.calendar_provider = CalendarClientProvider()
app.state.notifier = EmailNotifier()
app.state.orchestrator = ReconciliationOrchestrator(
    uow_factory=SqlUnitOfWork,
    executor=CalendarSyncExecutor(app.state.calendar_provider),
    notifier=app.state.notifier,
)
app.state.reminder_task = None


@app.on_event("startup")
async def startup_event():
    if DATABASE_URL.startswith("sqlite"):
        # Local development database; PostgreSQL schemas come from alembic
        await create_tables()

    provider = app.state.calendar_provider
    if await provider.initialize():
        logger.info("Google Calendar client ready")
    provider.start()

    if MAINTENANCE_REMINDERS_ENABLED:
        app.state.reminder_task = asyncio.create_task(
            run_reminder_loop(SqlUnitOfWork, app.state.notifier)
        )


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.calendar_provider.stop()

    task = app.state.reminder_task
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("Maintenance reminder task cancelled")


_STATUS_BY_ERROR = [
    (ValidationError, 422),
    (ConflictError, 409),
    (NotFoundError, 404),
    (ConsistencyError, 502),
    (ExternalServiceError, 502),
]


@app.exception_handler(RoboshopError)
async def roboshop_error_handler(request: Request, exc: RoboshopError):
    status = next((code for error, code in _STATUS_BY_ERROR if isinstance(exc, error)), 500)
    body = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, ConsistencyError):
        # The change itself is saved; only the calendar step needs a retry
        body.update(kind=exc.kind, entity_id=exc.entity_id, action=exc.action, saved=True)
    return JSONResponse(status_code=status, content=body)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Robot Shop API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "calendar_ready": app.state.calendar_provider.ready(),
    }
