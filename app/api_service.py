from __future__ import annotations

import logging
import os
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from google.api_core.exceptions import NotFound
from pydantic import ValidationError

from app.container import Services
from backup.backup_service import BackupError
from config.settings import settings
from inventory.reconciliation import OrderNotFound
from ops.structured_logger import setup_logging
from utils.request_context import clear_request_id, clear_user_id, set_request_id

from app.routers.admin import router as admin_router
from app.routers.audit import router as audit_router
from app.routers.backups import router as backups_router
from app.routers.catalog import router as catalog_router
from app.routers.health import router as health_router
from app.routers.inventory import router as inventory_router
from app.routers.notifications import router as notifications_router
from app.routers.orders import router as orders_router
from app.routers.users import router as users_router

log = logging.getLogger("firework.api")


def _get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or ""


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    content = {**content, "request_id": _get_request_id(request), "revision": os.getenv("K_REVISION") or ""}
    return JSONResponse(status_code=status_code, content=content)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the API. Pass `services` to run against prebuilt dependencies
    (tests); otherwise they are built on first request.
    """
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Firework Factory API", version="1.0.0")
    if services is not None:
        app.state.services = services

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = rid
        set_request_id(rid)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
            clear_user_id()
        response.headers["X-Request-Id"] = rid
        return response

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        log.warning(
            "http_exception",
            extra={
                "extra": {
                    "event": "http_exception",
                    "status_code": exc.status_code,
                    "detail": exc.detail,
                    "path": request.url.path,
                    "method": request.method,
                    "request_id": _get_request_id(request),
                }
            },
        )
        return _error_response(request, exc.status_code, {"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log.warning(
            "validation_error",
            extra={
                "extra": {
                    "event": "validation_error",
                    "path": request.url.path,
                    "method": request.method,
                    "request_id": _get_request_id(request),
                }
            },
        )
        return _error_response(request, 422, {"detail": exc.errors()})

    @app.exception_handler(ValidationError)
    async def schema_exception_handler(request: Request, exc: ValidationError):
        # Raised by prepare_for_write when a document fails its schema.
        log.warning(
            "schema_validation_error",
            extra={
                "extra": {
                    "event": "schema_validation_error",
                    "path": request.url.path,
                    "method": request.method,
                    "errors": exc.error_count(),
                }
            },
        )
        return _error_response(
            request,
            422,
            {"detail": "invalid_document", "errors": exc.errors(include_url=False, include_context=False)},
        )

    @app.exception_handler(OrderNotFound)
    async def order_not_found_handler(request: Request, exc: OrderNotFound):
        return _error_response(request, 404, {"detail": "order_not_found"})

    @app.exception_handler(NotFound)
    async def document_not_found_handler(request: Request, exc: NotFound):
        # update() on a missing document, e.g. marking an unknown notification read.
        log.warning(
            "document_not_found",
            extra={"extra": {"event": "document_not_found", "path": request.url.path, "message": exc.message}},
        )
        return _error_response(request, 404, {"detail": "not_found"})

    @app.exception_handler(BackupError)
    async def backup_error_handler(request: Request, exc: BackupError):
        log.error(
            "backup_error",
            extra={"extra": {"event": "backup_error", "message": str(exc), "path": request.url.path}},
        )
        return _error_response(request, 500, {"detail": "backup_failed", "message": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.error(
            "internal_unhandled_exception",
            extra={
                "extra": {
                    "event": "internal_unhandled_exception",
                    "error_type": type(exc).__name__,
                    "message": str(exc),
                    "path": request.url.path,
                    "method": request.method,
                    "request_id": _get_request_id(request),
                }
            },
            exc_info=True,
        )
        return _error_response(request, 500, {"error": "internal_unhandled_exception"})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health_router, tags=["health"])
    app.include_router(users_router, prefix="/api", tags=["users"])
    app.include_router(catalog_router, prefix="/api", tags=["catalog"])
    app.include_router(orders_router, prefix="/api", tags=["orders"])
    app.include_router(inventory_router, prefix="/api", tags=["inventory"])
    app.include_router(notifications_router, prefix="/api", tags=["notifications"])
    app.include_router(audit_router, prefix="/api", tags=["audit"])
    app.include_router(backups_router, prefix="/api", tags=["backups"])
    app.include_router(admin_router, prefix="/admin", tags=["admin"])
    return app


app = create_app()
