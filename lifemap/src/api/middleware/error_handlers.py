"""FastAPI exception handlers producing ``{"error", "message", "detail"}`` bodies."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...services.plan_service import PlanNotFoundError
from ...services.repository import RepositoryError

logger = logging.getLogger(__name__)

ERROR_CODES: Dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "validation_error",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_503_SERVICE_UNAVAILABLE: "storage_unavailable",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "internal_error",
}


def error_body(
    error: str, message: str, detail: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {"error": error, "message": message, "detail": detail}


def _json(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return _json(
        status.HTTP_400_BAD_REQUEST,
        error_body("validation_error", "Invalid request payload", {"errors": errors}),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = ERROR_CODES.get(exc.status_code, "http_error")
    if isinstance(exc.detail, dict):
        body = error_body(
            exc.detail.get("error", code),
            exc.detail.get("message", code.replace("_", " ")),
            exc.detail.get("detail"),
        )
    else:
        body = error_body(code, str(exc.detail or code.replace("_", " ")))
    return _json(exc.status_code, body)


async def plan_not_found_handler(request: Request, exc: PlanNotFoundError) -> JSONResponse:
    return _json(
        status.HTTP_404_NOT_FOUND,
        error_body("plan_not_found", exc.message, {"plan_id": exc.plan_id}),
    )


async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, RepositoryError):
        message, detail = exc.message, exc.details or None
    else:
        message, detail = f"Document store failure: {exc}", None
    logger.error("Storage failure on %s: %s", request.url.path, message)
    return _json(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        error_body("storage_unavailable", message, detail),
    )


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s", request.url.path)
    return _json(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_body("internal_error", "Internal server error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(PlanNotFoundError, plan_not_found_handler)
    app.add_exception_handler(RepositoryError, storage_error_handler)
    app.add_exception_handler(sqlite3.Error, storage_error_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "register_error_handlers",
    "error_body",
    "validation_exception_handler",
    "http_exception_handler",
    "plan_not_found_handler",
    "storage_error_handler",
    "internal_exception_handler",
]
