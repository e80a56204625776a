"""Tests for tenantcore.logging module."""

from __future__ import annotations

import json
import logging

import pytest

from tenantcore import (
    CoreConfig,
    LogLevel,
    get_request_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)


class TestSafePreview:
    """Tests for safe_preview function."""

    def test_none_value(self) -> None:
        assert safe_preview(None) == ""

    def test_whitespace_normalized(self) -> None:
        assert safe_preview("hello\n\tworld  test") == "hello world test"

    def test_truncation(self) -> None:
        result = safe_preview("a" * 300, limit=100)
        assert len(result) == 100
        assert result.endswith("…")

    def test_dict_value(self) -> None:
        assert '"key"' in safe_preview({"key": "value"})


class TestRedactSecrets:
    """Tests for redact_secrets function."""

    def test_bearer_token(self) -> None:
        result = redact_secrets("authorization: Bearer abc.def.ghi")
        assert "abc.def.ghi" not in result

    def test_tenant_token_header(self) -> None:
        result = redact_secrets("x-tenant-token: opaque123")
        assert "opaque123" not in result

    def test_hex_credential(self) -> None:
        """Test raw session credentials (64 hex chars) never survive."""
        credential = "ab" * 32
        assert credential not in redact_secrets(f"issued {credential}")

    def test_pepper(self) -> None:
        assert "chili" not in redact_secrets("token_pepper=chili")

    def test_no_secrets(self) -> None:
        text = "Assigned role manager to user at R/A"
        assert redact_secrets(text) == text

    def test_custom_replacement(self) -> None:
        assert "[HIDDEN]" in redact_secrets("password: hunter2", replacement="[HIDDEN]")


class TestSafeLogValue:
    def test_redacts_and_truncates(self) -> None:
        assert "[REDACTED]" in safe_log_value("api_key: sk-123456")
        assert len(safe_log_value("a" * 500, limit=100)) <= 100


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_level_from_config(self) -> None:
        setup_logging(config=CoreConfig(log_level=LogLevel.DEBUG), json_format=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_json_format(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=CoreConfig(log_level="INFO"), json_format=True)
        logging.getLogger("tenantcore.test").info("Test message")

        data = json.loads(capsys.readouterr().err.strip())
        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["logger"] == "tenantcore.test"

    def test_json_from_config_flag(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=CoreConfig(log_json=True))
        logging.getLogger("tenantcore.test").warning("flagged")
        assert capsys.readouterr().err.strip().startswith("{")

    def test_plain_format_redacts(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=CoreConfig(), json_format=False)
        logging.getLogger("tenantcore.test").info("got Bearer sekrit-token")

        output = capsys.readouterr().err.strip()
        assert "INFO" in output
        assert "sekrit-token" not in output
        assert not output.startswith("{")


class TestRequestLogger:
    """Tests for the request-scoped logger adapter."""

    def test_stamps_request_and_user(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_request_logger("tenantcore.test", request_id="req-1", user_id="user-1")
        with caplog.at_level(logging.INFO, logger="tenantcore.test"):
            logger.info("Resolving permissions")

        record = caplog.records[-1]
        assert record.request_id == "req-1"
        assert record.user_id == "user-1"

    def test_per_call_override(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_request_logger("tenantcore.test", request_id="req-1")
        with caplog.at_level(logging.INFO, logger="tenantcore.test"):
            logger.info("Override", user_id="user-2")

        assert caplog.records[-1].user_id == "user-2"
