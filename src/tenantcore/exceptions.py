"""Exception hierarchy for the tenantcore authorization core.

Access denial is never an exception: resolver queries return ``False`` or an
empty set. Exceptions are reserved for malformed input, missing referenced
entities, rejected writes and integrity violations.

Usage in request handlers:
    from tenantcore.exceptions import (
        NotFoundError,
        InconsistentError,
        grpc_error_handler,
    )
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "TenantCoreError",
    "NotFoundError",
    "ConflictError",
    "CycleError",
    "InconsistentError",
    "ValidationError",
    "ConfigurationError",
    "SecurityError",
    "StorageError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # Protocol helpers
    "public_message",
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "An internal error occurred"


# ---- Exception Hierarchy ----------------------------------------------------


class TenantCoreError(Exception):
    """Base exception for the authorization core.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "NOT_FOUND").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class NotFoundError(TenantCoreError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"
    message: str = "Referenced entity not found"


class ConflictError(TenantCoreError):
    """Uniqueness or structural violation on write."""

    code: str = "CONFLICT"
    message: str = "Write conflicts with existing data"


class CycleError(ConflictError):
    """A namespace move would make a node its own ancestor."""

    code: str = "CYCLE"
    message: str = "Namespace move would create a cycle"


class InconsistentError(TenantCoreError):
    """A read uncovered a structural invariant violation.

    Fatal: logged with full detail for operators, never repaired silently.
    """

    code: str = "INCONSISTENT"
    message: str = "Stored authorization data violates an invariant"


class ValidationError(TenantCoreError):
    """Malformed input (empty names, path separators in names, bad TTLs)."""

    code: str = "VALIDATION_ERROR"
    message: str = "Invalid input"


class ConfigurationError(TenantCoreError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class SecurityError(TenantCoreError):
    """Token missing, malformed or rejected."""

    code: str = "SECURITY_ERROR"
    message: str = "Authentication failed"


class StorageError(TenantCoreError):
    """Database or storage operation failed."""

    code: str = "STORAGE_ERROR"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[TenantCoreError])


class ErrorRegistry:
    """Registry mapping error codes to their class and gRPC status name."""

    def __init__(self) -> None:
        self._errors: dict[str, type[TenantCoreError]] = {}
        self._statuses: dict[str, str] = {}

    def register(self, code: str, error_cls: type[TenantCoreError], grpc_status: str = "INTERNAL") -> None:
        self._errors[code] = error_cls
        self._statuses[code] = grpc_status

    def get(self, code: str) -> type[TenantCoreError] | None:
        return self._errors.get(code)

    def grpc_status(self, code: str) -> str:
        """Name of the ``grpc.StatusCode`` member for ``code``; INTERNAL if unregistered."""
        return self._statuses.get(code, "INTERNAL")

    def all(self) -> dict[str, type[TenantCoreError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str, grpc_status: str = "INTERNAL") -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("QUOTA_ERROR", grpc_status="RESOURCE_EXHAUSTED")
        class QuotaError(TenantCoreError):
            code = "QUOTA_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls, grpc_status)
        return cls

    return cast(Callable[[_E], _E], decorator)


error_registry.register("INTERNAL_ERROR", TenantCoreError, "INTERNAL")
error_registry.register("NOT_FOUND", NotFoundError, "NOT_FOUND")
error_registry.register("CONFLICT", ConflictError, "ALREADY_EXISTS")
error_registry.register("CYCLE", CycleError, "FAILED_PRECONDITION")
error_registry.register("INCONSISTENT", InconsistentError, "INTERNAL")
error_registry.register("VALIDATION_ERROR", ValidationError, "INVALID_ARGUMENT")
error_registry.register("CONFIGURATION_ERROR", ConfigurationError, "FAILED_PRECONDITION")
error_registry.register("SECURITY_ERROR", SecurityError, "UNAUTHENTICATED")
error_registry.register("STORAGE_ERROR", StorageError, "UNAVAILABLE")


# ---- Protocol Mapping -------------------------------------------------------

_OPAQUE_CODES = frozenset({"INTERNAL_ERROR", "INCONSISTENT", "STORAGE_ERROR", "CONFIGURATION_ERROR"})


def public_message(error: TenantCoreError) -> str:
    """Message safe to return to an end user.

    Integrity and storage failures collapse to a generic string; the
    detailed message is only for operator logs.
    """
    if error.code in _OPAQUE_CODES:
        return GENERIC_FAILURE_MESSAGE
    return error.message


def get_grpc_status_code(error: TenantCoreError) -> Any:
    """Map a TenantCoreError to a grpc.StatusCode through ``error_registry``.

    Import grpc locally to avoid hard dependency at module level.
    """
    import grpc

    return grpc.StatusCode[error_registry.grpc_status(error.code)]


def grpc_error_handler(method):
    """Decorator for unary gRPC service methods with proper error handling.

    Catches TenantCoreError and aborts with the mapped status code and the
    caller-safe message. Full detail goes to the log.

    Usage:
        @grpc_error_handler
        async def AssignRole(self, request, context):
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except TenantCoreError as e:
            status_code = get_grpc_status_code(e)

            log = logger.error if e.code in _OPAQUE_CODES else logger.info
            log(
                "%s failed: [%s] %s",
                method.__name__,
                e.code,
                e.message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, public_message(e))
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(grpc.StatusCode.INTERNAL, GENERIC_FAILURE_MESSAGE)
            return

    return wrapper
