"""
MonkeysCMS - Main FastAPI Application.

Wires the JSON APIs, the admin UI, health and metrics endpoints, request
logging and the mapping of domain exceptions to HTTP responses.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from . import __version__
from .config import settings
from .database import init_db
from .exceptions import (AccountLockedException, AuthenticationException,
                         CmsException, DataIntegrityException,
                         DuplicateException, FormValidationException,
                         LoginRequiredException, NotFoundException,
                         PermissionDeniedException, TwoFactorRequiredException,
                         ValidationException, WidgetNotFoundException)
from .logging_config import get_logger, setup_logging
from .metrics import metrics_endpoint
from .middleware import RequestLoggingMiddleware
from .routers import admin, auth_api, fields_api, health

# Setup logging
setup_logging(log_level=settings.LOG_LEVEL, service_name="monkeyscms", use_json=settings.LOG_JSON)
logger = get_logger(__name__)

# Most specific classes first; the first isinstance match wins
EXCEPTION_STATUS: Dict[Type[CmsException], int] = {
    FormValidationException: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ValidationException: status.HTTP_422_UNPROCESSABLE_ENTITY,
    WidgetNotFoundException: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundException: status.HTTP_404_NOT_FOUND,
    DuplicateException: status.HTTP_409_CONFLICT,
    DataIntegrityException: status.HTTP_409_CONFLICT,
    AccountLockedException: status.HTTP_423_LOCKED,
    TwoFactorRequiredException: status.HTTP_401_UNAUTHORIZED,
    AuthenticationException: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedException: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Creates missing tables on startup.
    """
    logger.info("Starting MonkeysCMS...")
    logger.info(
        "Configuration loaded",
        extra={
            "extra_fields": {
                "app_name": settings.APP_NAME,
                "debug_mode": settings.DEBUG,
                "log_level": settings.LOG_LEVEL,
                "theme": settings.THEME_NAME,
            }
        },
    )
    init_db()

    yield

    logger.info("Shutting down MonkeysCMS...")


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Content management with configurable fields, blocks and taxonomy",
    version=__version__,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Add middleware (order matters - first added is last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router)
app.include_router(auth_api.router)
app.include_router(fields_api.router)
app.include_router(admin.router)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return await metrics_endpoint()


@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse("/admin", status_code=status.HTTP_307_TEMPORARY_REDIRECT)


# ==================== EXCEPTION HANDLERS ====================


def status_for(exc: CmsException) -> int:
    for exception_class, status_code in EXCEPTION_STATUS.items():
        if isinstance(exc, exception_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(LoginRequiredException)
async def login_required_handler(request: Request, exc: LoginRequiredException):
    """Send anonymous admin visitors to the login page, keeping their session."""
    response = RedirectResponse(exc.redirect_to, status_code=status.HTTP_303_SEE_OTHER)
    session = getattr(request.state, "session", None)
    if session is not None:
        session.set_cookie(response)
    return response


@app.exception_handler(CmsException)
async def cms_exception_handler(request: Request, exc: CmsException):
    """Map domain errors to JSON error responses."""
    status_code = status_for(exc)
    logger.warning(
        f"{type(exc).__name__}: {exc.message}",
        extra={"extra_fields": {"path": request.url.path, "status_code": status_code}},
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(
        f"Unhandled exception: {exc}",
        extra={"extra_fields": {"path": request.url.path, "method": request.method}},
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "request_id": request.headers.get("X-Request-ID"),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("monkeyscms.app:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
