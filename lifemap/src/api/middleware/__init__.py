"""FastAPI middleware for error handling."""

from .error_handlers import (
    error_body,
    http_exception_handler,
    internal_exception_handler,
    plan_not_found_handler,
    register_error_handlers,
    storage_error_handler,
    validation_exception_handler,
)

__all__ = [
    "register_error_handlers",
    "error_body",
    "validation_exception_handler",
    "http_exception_handler",
    "plan_not_found_handler",
    "storage_error_handler",
    "internal_exception_handler",
]
