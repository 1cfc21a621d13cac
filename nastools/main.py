from fastapi import FastAPI
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging


# Setup Logging FIRST
from nastools.utils.logger import setup_logging, change_log_level_runtime

setup_logging("INFO")  # Default level until the DB value is known


from nastools import __version__
from nastools.database import SessionLocal, init_db
from nastools.services.module_manager import ModuleManager
from nastools.services.monitor import build_monitor
from nastools.services.notifier import Notifier, WebhookNotifier
from nastools.services.settings import MonitorSettings, get_setting
from nastools.startup import init_config

from nastools.api import monitor


logger = logging.getLogger(__name__)


def get_log_level_from_db() -> str:
    """Log level from the config table, INFO when unavailable"""
    db = SessionLocal()
    try:
        return str(get_setting(db, "log_level", "INFO")).upper()
    except Exception as e:
        logger.warning(f"Could not read log_level from DB: {e}")
        return "INFO"
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting nastools...")
    try:
        init_db()
        logger.info("✓ Database initialized")
    except Exception as e:
        logger.error(f"✗ Database init failed: {e}")
        # Don't continue if database init fails
        raise

    try:
        init_config()
    except Exception as e:
        logger.error(f"✗ Config init failed: {e}")

    change_log_level_runtime(get_log_level_from_db())

    db = SessionLocal()
    try:
        settings = MonitorSettings.load(db)
        collaborators = ModuleManager(db).load(settings.modules)
    finally:
        db.close()
    logger.info(f"Monitor settings: {settings.describe()}")

    if settings.notify_webhook_url:
        notifier = WebhookNotifier(settings.notify_webhook_url)
        logger.info("✓ Webhook notifications enabled")
    else:
        notifier = Notifier()

    scheduler = build_monitor(settings, collaborators, notifier=notifier)
    app.state.scheduler = scheduler

    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("Scheduler disabled, jobs only run when triggered manually")

    yield

    # Shutdown
    logger.info("Shutting down nastools...")
    await scheduler.shutdown()
    await notifier.drain()


app = FastAPI(
    title="nastools",
    description="Subscription monitor: new episodes, release search, download completion",
    version=__version__,
    lifespan=lifespan
)


# Routes
app.include_router(monitor.router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": __version__}


@app.get("/")
async def root():
    return JSONResponse({
        "app": "nastools",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
