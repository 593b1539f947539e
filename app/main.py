# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from app.core.config import get_settings
from app.database import create_db_and_tables
from app.dependencies import get_services
from app.services.scheduler_service import register_jobs, scheduler

# Import models so SQLModel metadata is populated before create_all()
from app.models import user as _user_models  # noqa: F401
from app.models import merchant as _merchant_models  # noqa: F401
from app.models import driver as _driver_models  # noqa: F401
from app.models import order as _order_models  # noqa: F401


# Routers
from app.routers.users import router as users_router
from app.routers.merchants import router as merchants_router
from app.routers.drivers import router as drivers_router
from app.routers.orders import router as orders_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Initialize Firebase for push notifications.
      - Start the maintenance jobs (presence reaper, stuck-search sweep,
        daily driver stats reset).

    Shutdown:
      - Stop the scheduler loop.
    """
    logger.info("🔄 Startup: Connecting to Postgres...")
    try:
        create_db_and_tables()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise

    services = get_services()
    services.push.initialize()

    if settings.SCHEDULER_ENABLED:
        register_jobs(scheduler, services, settings)
        scheduler.run_in_background()
    yield
    if settings.SCHEDULER_ENABLED:
        scheduler.stop()


app = FastAPI(
    title=settings.PROJECT_NAME or "Comida Dispatch API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(merchants_router, prefix=settings.API_V1_STR)
app.include_router(drivers_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "comida-dispatch"}


@app.get("/health/scheduler")
def scheduler_status():
    return scheduler.get_status()
