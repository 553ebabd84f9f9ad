"""Unit tests for the exception hierarchy."""

import pytest

from src.core.exceptions import (
    ApiRequestError,
    ChannelError,
    ErrorCode,
    InvoiceNotifyError,
    NotFoundError,
    Severity,
    UnauthorizedError,
    ValidationError,
)


@pytest.mark.unit
class TestInvoiceNotifyError:
    """Tests for the base exception."""

    def test_accepts_enum_or_string_code(self) -> None:
        """Error codes are normalized to strings."""
        assert InvoiceNotifyError(ErrorCode.NOT_FOUND, "x").error_code == "NOT_FOUND"
        assert InvoiceNotifyError("CUSTOM", "x").error_code == "CUSTOM"

    def test_str_and_repr(self) -> None:
        """String forms carry the code, message and context."""
        error = InvoiceNotifyError(
            ErrorCode.INTERNAL_ERROR, "boom", context={"sweep": "overdue"}
        )

        assert str(error) == "[INTERNAL_ERROR] boom"
        assert repr(error) == (
            "InvoiceNotifyError(error_code='INTERNAL_ERROR', message='boom', "
            "severity=MEDIUM, context={'sweep': 'overdue'})"
        )

    def test_cause_is_chained(self) -> None:
        """The cause becomes __cause__."""
        cause = ValueError("bad")
        error = InvoiceNotifyError(ErrorCode.INTERNAL_ERROR, "wrapped", cause=cause)

        assert error.cause is cause
        assert error.__cause__ is cause

    @pytest.mark.parametrize(
        ("error", "severity", "expected"),
        [
            (ValidationError("v"), Severity.LOW, True),
            (NotFoundError("n"), Severity.LOW, True),
            (UnauthorizedError("u"), Severity.HIGH, False),
            (ChannelError("c"), Severity.MEDIUM, True),
        ],
    )
    def test_severity_and_expectedness(
        self, error: InvoiceNotifyError, severity: Severity, expected: bool
    ) -> None:
        """Each specialized error has a fixed severity."""
        assert error.severity is severity
        assert error.is_expected is expected


@pytest.mark.unit
class TestApiRequestError:
    """Tests for the client request error."""

    def test_status_code(self) -> None:
        """The HTTP status is kept; transport failures have none."""
        http_error = ApiRequestError("Notification not found", status_code=404)
        transport_error = ApiRequestError("Connection refused")

        assert http_error.status_code == 404
        assert http_error.error_code == ErrorCode.API_REQUEST_FAILED.value
        assert transport_error.status_code is None
