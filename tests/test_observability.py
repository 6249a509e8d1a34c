"""Tests for observability utilities."""

import json
import logging

from onsenbook.observability.correlation import (
    correlation_scope,
    get_correlation_id,
)
from onsenbook.observability.logging import JsonFormatter
from onsenbook.observability.redaction import (
    redact_string,
    redact_value,
    safe_log_context,
)


class TestRedaction:
    """Tests for redaction helpers."""

    def test_redact_phone_number(self):
        result = redact_string("Call me at 010-1234-5678")
        assert "1234" not in result
        assert "[REDACTED]" in result

    def test_redact_email(self):
        result = redact_string("Email: guest@example.com")
        assert "guest@example.com" not in result
        assert "[REDACTED]" in result

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"first_name": "Jiwoo", "room": 3})
        assert "Jiwoo" not in result
        assert "first_name" in result

    def test_redact_value_list_only_len(self):
        result = redact_value(["a", "b", "c"])
        assert "len=3" in result

    def test_contact_keys_always_redacted(self):
        ctx = safe_log_context(first_name="Jiwoo", nationality="KR", units=2)
        assert ctx["first_name"] == "[REDACTED]"
        assert ctx["nationality"] == "[REDACTED]"
        assert ctx["units"] == "2"

    def test_none_and_bool(self):
        assert safe_log_context(a=None, b=True) == {"a": "null", "b": "true"}


def _record(message="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("onsenbook.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_base_fields(self):
        payload = json.loads(JsonFormatter().format(_record()))
        assert payload["service"] == "onsenbook"
        assert payload["level"] == "INFO"
        assert payload["message"] == "hello"
        assert "correlationId" not in payload

    def test_includes_correlation_and_extra_fields(self):
        with correlation_scope("cid-123"):
            line = JsonFormatter().format(
                _record(extra_fields=safe_log_context(reservation_id="r1"))
            )
        payload = json.loads(line)
        assert payload["correlationId"] == "cid-123"
        assert payload["reservation_id"] == "r1"


class TestCorrelationScope:
    def test_restores_previous_id(self):
        with correlation_scope("outer"):
            with correlation_scope("inner") as cid:
                assert cid == "inner"
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"
        assert get_correlation_id() == ""

    def test_generates_id_when_missing(self):
        with correlation_scope() as cid:
            assert cid
            assert get_correlation_id() == cid
