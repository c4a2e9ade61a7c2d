"""Tests for log formatting and redaction."""

import json
import logging

from scoreboard.core.logging import (
    SensitiveDataFilter,
    StructuredFormatter,
    get_logger,
    request_id_var,
)


def make_record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("scoreboard.test", logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSensitiveDataFilter:
    def test_redacts_refresh_token(self):
        record = make_record("auth_refresh failed url=https://x/token/auth_refresh?refreshtoken=abc123&x=1")

        SensitiveDataFilter().filter(record)

        assert "abc123" not in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    def test_redacts_bearer(self):
        record = make_record("Authorization: Bearer eyJhbGciOi")

        SensitiveDataFilter().filter(record)

        assert "eyJhbGciOi" not in record.getMessage()

    def test_plain_message_untouched(self):
        record = make_record("Ingested 2024-01-04: 3800 quotes")
        assert SensitiveDataFilter().filter(record)
        assert record.getMessage() == "Ingested 2024-01-04: 3800 quotes"


class TestStructuredFormatter:
    def test_extra_fields_and_request_id(self):
        token = request_id_var.set("req-1")
        try:
            record = make_record("panel_sync completed", extra_fields={"job": "panel_sync", "fetched": 3})
            payload = json.loads(StructuredFormatter().format(record))
        finally:
            request_id_var.reset(token)

        assert payload["message"] == "panel_sync completed"
        assert payload["level"] == "WARNING"
        assert payload["request_id"] == "req-1"
        assert payload["job"] == "panel_sync"
        assert payload["fetched"] == 3


def test_logger_namespace():
    assert get_logger("services.panel_sync").name == "scoreboard.services.panel_sync"
