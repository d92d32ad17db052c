"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.database import Base, engine
from app.services.errors import LifecycleError

# Import routers
from app.routers import schedules, notifications

# Import all models so Base.metadata knows about them
from app.models.actor import Actor                              # noqa: F401
from app.models.addon import AddonService                       # noqa: F401
from app.models.subscription import Subscription                # noqa: F401
from app.models.schedule import Schedule                        # noqa: F401
from app.models.schedule_note import ScheduleNote               # noqa: F401
from app.models.notification import NotificationDelivery       # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Addon Service Scheduling",
    description="Lifecycle engine for scheduling and delivering purchased add-on services",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Register routers
app.include_router(schedules.router, prefix="/api/schedules", tags=["Schedules"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
