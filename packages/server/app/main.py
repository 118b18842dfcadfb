"""
Mangroves API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.errors import StaleRecordError, TenancyError
from app.core.logging import configure_logging
from app.core.middleware import SecurityHeadersMiddleware, TenantContextMiddleware
from app.core.redis import close_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router

settings = get_settings()
log = structlog.get_logger()


def _error_response(status: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": {"code": code, "message": message, "status": status, **extra}},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": {"code", "message", "status"}}``."""

    @app.exception_handler(TenancyError)
    async def tenancy_error_handler(request: Request, exc: TenancyError):
        if exc.status_code >= 500:
            log.error("request.failed", code=exc.code, message=exc.message, path=request.url.path)
        else:
            log.info("request.rejected", code=exc.code, status=exc.status_code, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError):
        # A versioned flush outside the repositories lost a race.
        error = StaleRecordError("Record")
        log.info("request.rejected", code=error.code, status=error.status_code, path=request.url.path)
        return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        codes = {401: "UNAUTHENTICATED", 403: "NOT_AUTHORIZED", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}
        return _error_response(exc.status_code, codes.get(exc.status_code, "HTTP_ERROR"), str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        return _error_response(422, "VALIDATION_FAILED", first.get("msg", "Invalid request"), field=field)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Mangroves",
        description="Multi-tenant accounts, workspaces and teams.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters - last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(TenantContextMiddleware)

    register_error_handlers(app)

    # Auth routes (not tenant-scoped)
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("mangroves.starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("mangroves.stopping")
        await close_redis()

    return app


app = create_app()
