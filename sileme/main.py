import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy import text

from sileme.db.base import get_db, SessionLocal
from sileme.core.config import settings
from sileme.core.deps import get_clock
from sileme.core.logging import configure_logging
from sileme.routers import checkins as checkins_router
from sileme.routers import notifications as notifications_router
from sileme.routers import stats as stats_router
from sileme.routers import users as users_router
from sileme.routers import ws as ws_router
from sileme.core.errors import (
    SilemeException,
    sileme_exception_handler,
    validation_exception_handler,
    storage_exception_handler,
    unhandled_exception_handler,
)
from sileme.services.delivery import ConnectionManager
from sileme.services.scheduler import Scheduler

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

connections = ConnectionManager(send_timeout=settings.DELIVERY_TIMEOUT_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    connections.bind(asyncio.get_running_loop())
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = Scheduler(SessionLocal, app.state.sinks, get_clock(), settings)
        scheduler.start()
    app.state.scheduler = scheduler
    logger.info("sileme started (env=%s, tz=%s)", settings.APP_ENV, settings.TIMEZONE)
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(
    title="Sileme API",
    description=(
        "**Daily check-in and notification backend**\n\n"
        "One check-in per user per calendar day, streak statistics recomputed "
        "from full history, achievements, and scheduled notification delivery "
        "over a real-time WebSocket channel.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)
app.state.connections = connections
app.state.sinks = {connections.channel: connections}
app.state.scheduler = None

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(SilemeException, sileme_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(OperationalError, storage_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(users_router.router)
app.include_router(checkins_router.router)
app.include_router(notifications_router.router)
app.include_router(stats_router.router)
app.include_router(ws_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable, plus whether the scheduler is running. Returns HTTP 503 if
    the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except OperationalError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    scheduler = app.state.scheduler
    return {
        "status": "ok",
        "db": "ok",
        "env": settings.APP_ENV,
        "scheduler": bool(scheduler and scheduler.running),
    }
