from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_ledger.core.config import settings
from school_ledger.core.database import close_db, init_db, init_engine
from school_ledger.core.exceptions import SchoolLedgerError
from school_ledger.core.logging_config import logger
from school_ledger.core.middleware import (
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    RequestTimeoutMiddleware,
    SecurityHeadersMiddleware,
)
from school_ledger.core.rate_limiter import limiter, rate_limit_exceeded_handler
from school_ledger.api.v1.router import api_router
from school_ledger.utils.envelope import error
import school_ledger.models  # noqa: F401  register models on the metadata


def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.SECRET_KEY or settings.SECRET_KEY == "CHANGE_ME":
        errors.append("SECRET_KEY is not set or using default value")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if settings.DATABASE_URL.startswith("sqlite") and settings.ENVIRONMENT == "production":
        warnings.append("SQLite in production - concurrent writers are serialized on the file lock")

    if not settings.RATE_LIMIT_ENABLED:
        warnings.append("Rate limiting disabled")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    validate_critical_config()

    init_engine()
    await init_db()
    logger.info("[Startup] Database tables ready")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="School administration backend: students, attendance, library, inventory, hostel and fees",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Order matters - last added runs first
app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_UPLOAD_SIZE)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers

@app.exception_handler(SchoolLedgerError)
async def school_ledger_error_handler(request: Request, exc: SchoolLedgerError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", extra={"event_type": "error", "error_code": exc.code})
    return error(exc.message, exc.status_code, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    message = fields[0]["message"] if len(fields) == 1 else "Validation failed"
    return error(message, 400, {"errors": fields})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity violation on {request.method} {request.url.path}: {exc.orig}")
    return error("Request conflicts with existing data", 409)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
@app.exception_handler(PoolTimeoutError)
async def store_unavailable_handler(request: Request, exc: Exception):
    logger.error(f"Store unavailable: {exc}", exc_info=True)
    return error("Service temporarily unavailable", 503)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error(str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(
        exc, f"{request.method} {request.url.path}", http_method=request.method, http_path=request.url.path
    )
    return error(str(exc) if settings.DEBUG else "An error occurred", 500)


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness only; /api/v1/health also checks the store"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


def run():
    import uvicorn
    uvicorn.run(
        "school_ledger.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
