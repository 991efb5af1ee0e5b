"""
Logistics Pro Backend
FastAPI application entry point

- Database handle, orchestrator and notifier built in lifespan, closed at shutdown
- Rate limiting with SlowAPI
- Error sanitization middleware + structured error responses
- Health endpoint with DB ping
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.responses import JSONResponse

from logistics_pro import __version__
from logistics_pro.api.routes import auth, shipments
from logistics_pro.core.config import settings
from logistics_pro.core.database import Database
from logistics_pro.core.error_handler import ErrorSanitizationMiddleware, register_exception_handlers
from logistics_pro.core.rate_limit import limiter, rate_limit_exceeded_handler
from logistics_pro.services.lifecycle import ShipmentLifecycle
from logistics_pro.services.notifications import build_dispatcher
from logistics_pro.services.tracking_numbers import TrackingNumberGenerator

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_lifecycle(database: Database, notifier=None) -> ShipmentLifecycle:
    generator = TrackingNumberGenerator(
        prefix=settings.TRACKING_NUMBER_PREFIX,
        random_length=settings.TRACKING_NUMBER_RANDOM_LENGTH,
    )
    return ShipmentLifecycle(
        database,
        generator=generator,
        notifier=notifier,
        max_attempts=settings.TRACKING_NUMBER_MAX_ATTEMPTS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the store handle and orchestrator on startup; release them on
    shutdown.
    """
    configure_logging()

    database = Database.from_settings(settings)
    if settings.DB_AUTO_CREATE_TABLES:
        await database.create_all()

    try:
        await database.ping()
        logger.info("Database connected")
    except Exception as e:
        # Keep serving; /health reports the outage
        logger.error(f"Database unreachable at startup: {type(e).__name__}: {e}")

    notifier = build_dispatcher(settings, database)
    app.state.database = database
    app.state.notifier = notifier
    app.state.lifecycle = build_lifecycle(database, notifier)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")

    yield

    await notifier.close()
    logger.info("Notification dispatcher closed")
    await database.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="Logistics Pro API",
    description="""
## Logistics Pro Shipment Tracking API

### Features
- **Authentication**: phone + password, JWT bearer tokens
- **Shipments**: create, list (role scoped), detail with status history
- **Tracking**: public lookup by tracking number
- **Status updates**: append-only history, customer push notifications

### Roles
- `company`: sees the shipments it created
- `driver`: sees the shipments assigned to it
- `client`: sees all shipments
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check and monitoring endpoints"},
        {"name": "Authentication", "description": "Registration, login and push tokens"},
        {"name": "Shipments", "description": "Shipment lifecycle and tracking"},
    ],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)

app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(shipments.router, prefix="/api", tags=["Shipments"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with an actual DB ping.
    Returns 503 if the database is unreachable.
    """
    health_status = {
        "status": "OK",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    database: Database = app.state.database
    try:
        await database.ping()
        health_status["database"] = "connected"
    except Exception as e:
        logger.warning(f"Health check DB ping failed: {type(e).__name__}: {e}")
        health_status["database"] = "error"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    pool = database.pool_status()
    if pool is not None:
        health_status["pool"] = pool

    return health_status
