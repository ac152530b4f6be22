# app/main.py
from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import FastAPI, Request

from app.core.config import get_settings
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import profile as _profile_models  # noqa: F401
from app.models import water_request as _request_models  # noqa: F401
from app.models import offer as _offer_models  # noqa: F401
from app.models import notification as _notification_models  # noqa: F401
from app.models import dispute as _dispute_models  # noqa: F401
from app.models import rating as _rating_models  # noqa: F401
from app.models import commission as _commission_models  # noqa: F401
from app.models import admin as _admin_models  # noqa: F401

# Routers
from app.routers.users import router as users_router
from app.routers.requests import router as requests_router
from app.routers.requests import offers_router
from app.routers.provider import router as provider_router
from app.routers.disputes import router as disputes_router
from app.routers.ratings import router as ratings_router
from app.routers.notifications import router as notifications_router
from app.routers.notifications import push_router
from app.routers.admin import router as admin_router
from app.routers.admin_settings import router as admin_settings_router
from app.routers.cron import router as cron_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Start the lifecycle loop (offer expiry / request timeout) when
        ENABLE_LIFECYCLE_SCHEDULER is set; otherwise cron drives it.

    Shutdown:
      - Cancel the lifecycle loop.
    """
    logger.info("Startup: connecting to Supabase Postgres...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error("Startup: DB connection FAILED: %s", e)
        raise

    scheduler_task = None
    if settings.ENABLE_LIFECYCLE_SCHEDULER:
        from app.jobs.scheduler import lifecycle_loop

        scheduler_task = asyncio.create_task(lifecycle_loop())

    yield

    if scheduler_task is not None:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            logger.info("Lifecycle scheduler stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = "Error interno del servidor" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(requests_router, prefix=settings.API_V1_STR)
app.include_router(offers_router, prefix=settings.API_V1_STR)
app.include_router(provider_router, prefix=settings.API_V1_STR)
app.include_router(disputes_router, prefix=settings.API_V1_STR)
app.include_router(ratings_router, prefix=settings.API_V1_STR)
app.include_router(notifications_router, prefix=settings.API_V1_STR)
app.include_router(push_router, prefix=settings.API_V1_STR)
app.include_router(admin_router, prefix=settings.API_V1_STR)
app.include_router(admin_settings_router, prefix=settings.API_V1_STR)
app.include_router(cron_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "nitoagua-backend"}


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
