"""FastAPI application setup."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..app import Application
from ..logging_config import get_logger
from .routes import notifications, observability, portal

logger = get_logger(__name__)

# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


def _install_error_handlers(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            return _error(
                exc.status_code,
                exc.detail.get("code", "ERROR"),
                exc.detail.get("message", ""),
            )
        return _error(exc.status_code, "ERROR", str(exc.detail))

    @fastapi_app.exception_handler(RequestValidationError)
    async def validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = [".".join(str(p) for p in e["loc"][1:]) for e in exc.errors()]
        return _error(400, "INVALID_DATA", f"Invalid or missing fields: {', '.join(fields)}")

    @fastapi_app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return _error(500, "INTERNAL_ERROR", str(exc) or "Internal Server Error")


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="resultwatch API",
        description="Lab result notifications: store service and portal checks",
        version="1.0.0",
        lifespan=lifespan,
    )

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(fastapi_app)

    fastapi_app.include_router(observability.create_observability_router(application))
    fastapi_app.include_router(notifications.create_notifications_router(application))
    fastapi_app.include_router(portal.create_portal_router(application))

    return fastapi_app
