"""Service-level errors shared by the store, the service and the web layer."""

import functools
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """An error that carries a machine-readable code and an HTTP status.

    Args:
        message: Human-readable description
        code: Error code (NOT_FOUND, VALIDATION_ERROR, DB_ERROR, ...)
        status_code: HTTP status the web layer should answer with
        details: Optional per-field validation messages
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        result = {"error": self.message, "code": self.code}
        if self.details:
            result["details"] = self.details
        return result


def not_found(resource: str) -> ServiceError:
    return ServiceError(f"{resource} not found", "NOT_FOUND", 404)


def invalid_json() -> ServiceError:
    return ServiceError("Invalid JSON in request body", "INVALID_JSON", 400)


def validation(message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    return ServiceError(message, "VALIDATION_ERROR", 400, details)


def database(message: str = "Database operation failed") -> ServiceError:
    return ServiceError(message, "DB_ERROR", 500)


def internal(message: str = "Internal server error") -> ServiceError:
    return ServiceError(message, "INTERNAL_ERROR", 500)


def with_error_handling(context: str):
    """Decorate a service operation so unexpected failures become DB_ERROR.

    ServiceErrors pass through untouched. Anything else is logged with the
    operation name and re-raised as a DB_ERROR chained to the original.

    Args:
        context: Operation name used in the log line and the error message
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ServiceError:
                raise
            except Exception as e:
                logger.exception("[%s] %s", context, e)
                raise database(f"Operation failed: {context}") from e
        return wrapper
    return decorator
