import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from isitdown import gateway
from isitdown.aggregation import OutageBoard
from isitdown.config import get_settings
from isitdown.database import Base, dispose_engine, get_engine
from isitdown.incidents import prune_old_reports
from isitdown.monitoring import MonitoringService
from isitdown.notifications import NotificationDispatcher
from isitdown.routers import (
    auth,
    check,
    incidents,
    maintenance,
    monitored,
    monitoring,
    outages,
    websites,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("isitdown.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    if engine is not None:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            logger.warning(f"Could not create tables, continuing in fallback mode: {e}")

    app.state.outage_board.attach()

    # Start the monitoring loop (skip in test mode)
    if not getattr(app.state, "_testing", False):
        scheduler = app.state.scheduler
        scheduler.add_job(
            prune_old_reports,
            trigger=IntervalTrigger(hours=1),
            id="prune_old_reports",
            replace_existing=True,
        )
        if not scheduler.running:
            scheduler.start()
        await app.state.monitoring.start()

    yield

    # Shutdown
    app.state.outage_board.detach()
    if not getattr(app.state, "_testing", False):
        app.state.monitoring.stop()
        if app.state.scheduler.running:
            app.state.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    scheduler = AsyncIOScheduler()
    app.state.scheduler = scheduler
    app.state.monitoring = MonitoringService(scheduler, notifier=NotificationDispatcher())
    app.state.outage_board = OutageBoard()

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(check.router)
    app.include_router(auth.router)
    app.include_router(websites.router)
    app.include_router(incidents.router)
    app.include_router(outages.router)
    app.include_router(monitoring.router)
    app.include_router(monitored.router)
    app.include_router(maintenance.router)

    @app.get("/api/health")
    async def health_check():
        connected = await gateway.is_connected()
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "persistence": "online" if connected else "fallback",
        }

    return app


app = create_app()


def run() -> None:
    import uvicorn

    logger.info(
        f"Server running on port {settings.port}; status check endpoint: "
        f"http://localhost:{settings.port}/check?url=https://example.com"
    )
    uvicorn.run("isitdown.main:app", host="0.0.0.0", port=settings.port)
