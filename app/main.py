"""
Finance Tracker API - FastAPI Application

REST API over MongoDB for transactions, categories, budgets and users.

Run with: uvicorn app.main:app --port 3001

ERROR MAPPING:
- Invalid input           → 400 {"error": "Invalid request", "details": [...]}
- Unknown or malformed id → 404 {"error": "<Entity> not found"}
- Uniqueness violation    → 400 {"error": "<specific message>"}
- Anything else           → 500 {"error": "Internal server error"}
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.dependencies import get_components
from app.routes import budgets, categories, transactions, users
from src.config import get_settings, validate_all_settings
from src.models.finance import utc_now
from src.orchestrator import AppComponents, create_app_components
from src.services.storage import DuplicateError, NotFoundError, StorageError


logger = structlog.get_logger(__name__)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the application.

    Args:
        components: Pre-built components (tests inject an in-memory
                    database this way). Built on first request if None.
    """
    settings = get_settings().app

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "api_starting",
            environment=settings.app_environment,
            port=settings.port,
        )

        checks = validate_all_settings()
        if not checks.get("mongo"):
            logger.warning("mongo_not_configured", error=checks.get("mongo_error"))
        else:
            # Connect up front; the API still starts if the database is down
            try:
                if app.state.components is None:
                    app.state.components = create_app_components()
                app.state.components.db_client.get_database()
            except StorageError as e:
                logger.warning("mongo_initial_connection_failed", error=str(e))

        yield

        if app.state.components is not None:
            app.state.components.db_client.close()
        logger.info("api_stopped")

    app = FastAPI(
        title="Personal Finance Tracker API",
        debug=settings.debug_mode,
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(transactions.router)
    app.include_router(categories.router)
    app.include_router(budgets.router)
    app.include_router(users.router)

    register_exception_handlers(app)

    @app.get("/api/health")
    def health(request: Request):
        try:
            get_components(request).db_client.ping()
        except (StorageError, ValidationError) as e:
            logger.warning("health_check_failed", error=str(e))
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "ERROR",
                    "message": "Database unavailable",
                    "timestamp": utc_now().isoformat(),
                },
            )

        return {
            "status": "OK",
            "message": "Personal Finance Tracker API is running",
            "timestamp": utc_now().isoformat(),
        }

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map the storage error taxonomy and validation errors onto HTTP."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(status_code=exc.status_code, content={"error": "Route not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": str(exc)},
        )

    @app.exception_handler(DuplicateError)
    async def duplicate_handler(request: Request, exc: DuplicateError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc)},
        )

    async def audit_failure(request: Request, exc: Exception) -> None:
        components = request.app.state.components
        if components is None or components.audit_logger is None:
            return
        await run_in_threadpool(
            components.audit_logger.log_error,
            error_type=type(exc).__name__,
            error_message=str(exc),
            details={"path": request.url.path, "method": request.method},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "storage_error",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        await audit_failure(request, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_error",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        await audit_failure(request, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().app.port)
