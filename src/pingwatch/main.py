import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pingwatch.config import get_settings
from pingwatch.database import Base, engine, get_session_factory
from pingwatch.errors import InvalidScheduleError, NotFoundError
from pingwatch.notifier import NotificationDispatcher
from pingwatch.recorder import PingRecorder
from pingwatch.repository import CheckRepository, IntegrationStore
from pingwatch.routers import checks, integrations, ping
from pingwatch.scheduler import start_scheduler, stop_scheduler
from pingwatch.sweeper import StatusSweeper

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Start the sweep and probes (skip in test mode)
    sweeper = None
    if not getattr(app.state, "_testing", False):
        repository = CheckRepository(get_session_factory())
        dispatcher = NotificationDispatcher(IntegrationStore(get_session_factory()), repository)
        recorder = PingRecorder(repository, dispatcher)
        sweeper = StatusSweeper(
            repository, dispatcher, interval_seconds=settings.sweep_interval_seconds
        )
        await start_scheduler(sweeper, repository, recorder)

    yield

    # Shutdown
    if sweeper is not None:
        stop_scheduler(sweeper)
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(checks.router)
app.include_router(integrations.router)
app.include_router(ping.router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidScheduleError)
async def invalid_schedule_handler(request: Request, exc: InvalidScheduleError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }
