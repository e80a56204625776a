"""Tests for the error taxonomy and its gRPC mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import grpc
import pytest

from tenantcore.exceptions import (
    GENERIC_FAILURE_MESSAGE,
    ConflictError,
    CycleError,
    InconsistentError,
    NotFoundError,
    SecurityError,
    StorageError,
    TenantCoreError,
    ValidationError,
    error_registry,
    get_grpc_status_code,
    grpc_error_handler,
    public_message,
    register_error,
)


class TestHierarchy:
    """Tests for error codes and details."""

    def test_codes(self) -> None:
        assert NotFoundError().code == "NOT_FOUND"
        assert ConflictError().code == "CONFLICT"
        assert CycleError().code == "CYCLE"
        assert InconsistentError().code == "INCONSISTENT"
        assert ValidationError().code == "VALIDATION_ERROR"

    def test_details_kept(self) -> None:
        error = NotFoundError("Namespace x not found", namespace_id="x")
        assert error.message == "Namespace x not found"
        assert error.details == {"namespace_id": "x"}
        assert str(error) == "Namespace x not found"

    def test_registry(self) -> None:
        assert error_registry.get("CYCLE") is CycleError

        @register_error("QUOTA_ERROR", grpc_status="RESOURCE_EXHAUSTED")
        class QuotaError(TenantCoreError):
            code = "QUOTA_ERROR"

        assert error_registry.get("QUOTA_ERROR") is QuotaError
        assert get_grpc_status_code(QuotaError()) == grpc.StatusCode.RESOURCE_EXHAUSTED

    def test_unregistered_code_is_internal(self) -> None:
        assert get_grpc_status_code(TenantCoreError(code="SOMETHING_ELSE")) == grpc.StatusCode.INTERNAL


class TestProtocolMapping:
    """Tests for public messages and status codes."""

    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (NotFoundError(), grpc.StatusCode.NOT_FOUND),
            (ConflictError(), grpc.StatusCode.ALREADY_EXISTS),
            (CycleError(), grpc.StatusCode.FAILED_PRECONDITION),
            (ValidationError(), grpc.StatusCode.INVALID_ARGUMENT),
            (InconsistentError(), grpc.StatusCode.INTERNAL),
            (SecurityError(), grpc.StatusCode.UNAUTHENTICATED),
            (StorageError(), grpc.StatusCode.UNAVAILABLE),
            (TenantCoreError(), grpc.StatusCode.INTERNAL),
        ],
    )
    def test_status_codes(self, error: TenantCoreError, status: grpc.StatusCode) -> None:
        assert get_grpc_status_code(error) == status

    def test_integrity_detail_hidden(self) -> None:
        """Test integrity failures never leak their detail to callers."""
        error = InconsistentError("ancestor chain of 'R/A/X' broken at 'R/A'")
        assert public_message(error) == GENERIC_FAILURE_MESSAGE
        assert public_message(NotFoundError("Role r1 not found")) == "Role r1 not found"


class TestGrpcErrorHandler:
    """Tests for the async handler decorator."""

    @pytest.mark.asyncio
    async def test_aborts_with_mapped_status(self) -> None:
        class Servicer:
            @grpc_error_handler
            async def Move(self, request, context):
                raise CycleError("Cannot move 'R/A' under its own subtree")

        context = MagicMock()
        context.abort = AsyncMock()
        await Servicer().Move(None, context)

        context.set_trailing_metadata.assert_called_once_with([("error-code", "CYCLE")])
        context.abort.assert_awaited_once_with(
            grpc.StatusCode.FAILED_PRECONDITION, "Cannot move 'R/A' under its own subtree"
        )

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self) -> None:
        class Servicer:
            @grpc_error_handler
            async def Get(self, request, context):
                raise RuntimeError("db password is hunter2")

        context = MagicMock()
        context.abort = AsyncMock()
        await Servicer().Get(None, context)

        context.abort.assert_awaited_once_with(grpc.StatusCode.INTERNAL, GENERIC_FAILURE_MESSAGE)

    @pytest.mark.asyncio
    async def test_passes_result_through(self) -> None:
        class Servicer:
            @grpc_error_handler
            async def Ping(self, request, context):
                return "pong"

        assert await Servicer().Ping(None, MagicMock()) == "pong"
