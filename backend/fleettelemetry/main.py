import hmac
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware

from fleettelemetry.api.rate_limit import limiter
from fleettelemetry.api.routes import router
from fleettelemetry.config import settings
from fleettelemetry.database import get_db, init_db
from fleettelemetry.models.vessel import Vessel
from fleettelemetry.schemas.error import ErrorResponse
from fleettelemetry.utils.timestamps import format_rfc3339, utcnow

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables at startup."""
    init_db()
    logger.info("Database ready (%s)", settings.DATABASE_URL.split("://", 1)[0])
    yield


app = FastAPI(
    title="FleetTelemetry",
    description="Vessel telemetry workbook ingestion and time-series query API.",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS origins from settings (comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Simple API key check. If FLEETTELEMETRY_API_KEY is unset, all requests pass."""

    async def dispatch(self, request: Request, call_next):
        if settings.FLEETTELEMETRY_API_KEY is not None:
            # Allow health check and OpenAPI docs without auth
            if request.url.path not in ("/healthz", "/docs", "/openapi.json", "/redoc"):
                api_key = request.headers.get("X-API-Key")
                if not hmac.compare_digest(api_key or "", settings.FLEETTELEMETRY_API_KEY):
                    return JSONResponse(
                        status_code=401,
                        content={"detail": "Invalid or missing API key"},
                    )
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.include_router(router, prefix="/api/v1")


# ── Structured error handlers ─────────────────────────────────────────────────

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content=ErrorResponse(error="Validation error", detail=str(exc)).model_dump())


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    return JSONResponse(status_code=409, content=ErrorResponse(error="Conflict", detail=str(exc.orig) if exc.orig else str(exc)).model_dump())


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content=ErrorResponse(error="Internal server error", detail="An unexpected error occurred.").model_dump())


@app.get("/healthz", tags=["system"])
def healthz(db: Session = Depends(get_db)):
    """Database connectivity check; 503 when the database cannot be queried."""
    try:
        db.execute(text("SELECT 1"))
        count = db.query(func.count(Vessel.id)).scalar()
    except SQLAlchemyError as e:
        logger.warning("Health check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": "database query failed", "detail": str(e)},
        )
    return {
        "status": "healthy",
        "timestamp": format_rfc3339(utcnow()),
        "database": "connected",
        "vessels": count,
    }
