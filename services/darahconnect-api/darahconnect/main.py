from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import time
import structlog
from contextlib import asynccontextmanager

from .core.config import settings
from .core.exceptions import DarahConnectError
from .routers import (
    auth,
    blood_donations,
    blood_requests,
    certificates,
    dashboard,
    donations,
    donor_registrations,
    donor_schedules,
    health,
    health_passports,
    hospitals,
    notifications,
    users,
)
from .models.database import get_db_session, init_database
from .services.user_service import UserService
from .utils.monitoring import setup_prometheus_metrics, track_api_error, track_request_metrics
from .utils.responses import error_response

logging.basicConfig(format="%(message)s", level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

INTERNAL_ERROR_MESSAGE = "Terjadi kesalahan pada server"


async def bootstrap_admin():
    """Create the first administrator from FIRST_ADMIN_EMAIL/FIRST_ADMIN_PASSWORD."""
    if not settings.FIRST_ADMIN_EMAIL or not settings.FIRST_ADMIN_PASSWORD:
        return
    async with get_db_session() as session:
        await UserService(session).ensure_admin(settings.FIRST_ADMIN_EMAIL, settings.FIRST_ADMIN_PASSWORD)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting DarahConnect API", version=settings.APP_VERSION, env=settings.ENV)

    await init_database()
    await bootstrap_admin()

    if settings.ENABLE_METRICS:
        setup_prometheus_metrics()

    logger.info("Service startup completed")

    yield

    # Shutdown
    logger.info("Shutting down DarahConnect API")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Blood donation coordination service: requests, campaigns, donors and donations",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"]
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )

    try:
        response = await call_next(request)

        process_time = time.time() - start_time

        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            process_time=process_time
        )

        response.headers["X-Process-Time"] = str(process_time)
        if settings.ENABLE_METRICS:
            track_request_metrics(request, response, process_time)

        return response

    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            "Request failed",
            method=request.method,
            url=str(request.url),
            error=str(e),
            process_time=process_time
        )
        raise


@app.exception_handler(DarahConnectError)
async def darahconnect_exception_handler(request: Request, exc: DarahConnectError):
    """Render domain errors raised by services."""
    logger.warning(
        "Request rejected",
        method=request.method,
        url=str(request.url),
        status_code=exc.status_code,
        error=exc.message
    )
    track_api_error(request.url.path, type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content=error_response(exc.message, exc.status_code))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.error(
        "HTTP exception",
        method=request.method,
        url=str(request.url),
        status_code=exc.status_code,
        detail=exc.detail
    )
    return JSONResponse(status_code=exc.status_code, content=error_response(str(exc.detail), exc.status_code))


def first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Request tidak valid"
    error = errors[0]
    message = str(error.get("msg", "Request tidak valid"))
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Bad payloads are reported as 400 with the first validation message."""
    message = first_validation_message(exc)
    logger.info("Validation failed", method=request.method, url=str(request.url), error=message)
    return JSONResponse(status_code=400, content=error_response(message, 400))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        url=str(request.url),
        error=str(exc),
        error_type=type(exc).__name__
    )
    track_api_error(request.url.path, type(exc).__name__)
    return JSONResponse(status_code=500, content=error_response(INTERNAL_ERROR_MESSAGE, 500))


# Include routers
app.include_router(health.router, prefix=settings.API_V1_STR)
app.include_router(health.metrics_router, prefix=settings.API_V1_STR)
app.include_router(auth.router, prefix=settings.API_V1_STR)
app.include_router(users.router, prefix=settings.API_V1_STR)
app.include_router(hospitals.router, prefix=settings.API_V1_STR)
app.include_router(blood_requests.router, prefix=settings.API_V1_STR)
app.include_router(donor_schedules.router, prefix=settings.API_V1_STR)
app.include_router(donor_registrations.router, prefix=settings.API_V1_STR)
app.include_router(health_passports.router, prefix=settings.API_V1_STR)
app.include_router(blood_donations.router, prefix=settings.API_V1_STR)
app.include_router(certificates.router, prefix=settings.API_V1_STR)
app.include_router(notifications.router, prefix=settings.API_V1_STR)
app.include_router(donations.router, prefix=settings.API_V1_STR)
app.include_router(dashboard.router, prefix=settings.API_V1_STR)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": f"{settings.API_V1_STR}/health",
        "timestamp": time.time()
    }


# API information endpoint
@app.get(f"{settings.API_V1_STR}/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": settings.API_V1_STR,
        "environment": settings.ENV,
        "features": {
            "payments": bool(settings.MIDTRANS_SERVER_KEY),
            "email": bool(settings.MAILJET_API_KEY and settings.MAILJET_SECRET_KEY),
            "google_login": bool(settings.GOOGLE_CLIENT_ID),
            "monitoring": settings.ENABLE_METRICS
        },
        "endpoints": {
            "health": f"{settings.API_V1_STR}/health",
            "metrics": f"{settings.API_V1_STR}/metrics",
            "docs": "/docs"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "darahconnect.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
