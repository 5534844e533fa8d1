"""Main FastAPI application"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from pathlib import Path
from typing import Any, Optional
import logging
import traceback
import time
import uuid

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

from saas_control.config import Settings, get_settings
from saas_control.core.context import AppContext
from saas_control.core.database import init_db
from saas_control.core.exceptions import BaseAPIException
from saas_control.api.v1 import access_reviews, audit, auth, exports
from saas_control.schemas.response import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "saascontrol_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "saascontrol_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)


def _error_response(status_code: int, error: str, request: Request, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details, path=request.url.path)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def configure_logging(settings: Settings) -> None:
    """Log to file and stderr - ensure log directory exists"""
    log_file = settings.get_log_file()
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        """Handle custom API exceptions"""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"API Exception: {exc.message}",
            extra={
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method
            }
        )

        return _error_response(exc.status_code, exc.message, request, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors"""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        logger.warning(
            f"Validation error: {errors}",
            extra={"path": request.url.path, "method": request.method}
        )

        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", request, errors)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors"""
        logger.error(
            f"Database error: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "traceback": traceback.format_exc()
            }
        )

        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "A database error occurred. Please try again later.",
            request,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions"""
        logger.critical(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "traceback": traceback.format_exc()
            }
        )

        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Our team has been notified.",
            request,
        )


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the API application

    Args:
        settings: Settings to use, defaults to get_settings()
        context: Prebuilt context (tests), defaults to one built from settings

    Returns:
        FastAPI application
    """
    settings = settings or (context.settings if context else get_settings())
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None
    )
    app.state.context = context or AppContext.from_settings(settings)

    # GZip compression for large responses
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # CORS middleware - the session cookie needs credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers + request timing middleware
    @app.middleware("http")
    async def add_headers_and_timing(request: Request, call_next):
        """Add security headers and log slow requests"""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Request-ID"] = request_id

        REQUEST_COUNT.labels(request.method, request.url.path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, request.url.path).observe(duration)

        if duration > 1.0:
            logger.warning(
                "Slow request: %s %s took %.2fs request_id=%s",
                request.method,
                request.url.path,
                duration,
                request_id,
            )

        return response

    _register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        """Validate configuration and check the database"""
        settings.validate_security_settings()
        settings.validate_auth_settings()
        ctx: AppContext = app.state.context
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}, data mode: {ctx.data_mode}")
        if settings.AUTH_ENABLED:
            logger.info(f"Authentication enabled via {settings.safe_auth_host()}")
        else:
            logger.warning("AUTH_ENABLED=false - all requests run as the mock administrator")

        try:
            init_db(ctx.engine, settings)
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.context.dispose()
        logger.info(f"Shutting down {settings.APP_NAME}")

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint"""
        ctx: AppContext = app.state.context
        db_ok = True
        db_error = None
        db = ctx.open_session()
        if db is not None:
            try:
                db.execute(text("SELECT 1"))
            except Exception as exc:
                db_ok = False
                db_error = str(exc)
            finally:
                db.close()

        return HealthResponse(
            status="healthy" if db_ok else "degraded",
            version=settings.APP_VERSION,
            data_mode=ctx.data_mode,
            auth_enabled=settings.AUTH_ENABLED,
            readiness={"database": {"ok": db_ok, "error": db_error}},
        )

    @app.get("/metrics")
    def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    def root():
        """Root endpoint"""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/api/docs" if settings.DEBUG else "disabled"
        }

    # Include routers
    app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
    app.include_router(access_reviews.router, prefix="/api/v1/access-reviews", tags=["Access Reviews"])
    app.include_router(audit.router, prefix="/api/v1/audit-events", tags=["Audit"])
    app.include_router(exports.router, prefix="/api/v1/exports", tags=["Exports"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "saas_control.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )
