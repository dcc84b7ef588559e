"""Tests for structured logging and audit events."""

import io
import json
import logging

from jobportal.logger import StructuredLogger
from jobportal.utils.audit import AuditAction, log_audit_event


def _logger(name: str) -> tuple[StructuredLogger, io.StringIO]:
    stream = io.StringIO()
    logger = StructuredLogger(name=name, level=logging.DEBUG, stream=stream, enable_file=False)
    return logger, stream


class TestJSONFormatter:
    """Log lines are JSON objects."""

    def test_line_shape(self):
        logger, stream = _logger("jobportal.tests.format")

        logger.info("hello %s", "world", extra={"event": "GREETING"})

        entry = json.loads(stream.getvalue().strip())
        assert entry["level"] == "INFO"
        assert entry["logger_name"] == "jobportal.tests.format"
        assert entry["message"] == "hello world"
        assert entry["extra"] == {"event": "GREETING"}
        assert "exception" not in entry

    def test_exception_is_included(self):
        logger, stream = _logger("jobportal.tests.exception")

        try:
            raise ValueError("bad")
        except ValueError:
            logger.error("failed", exc_info=True)

        entry = json.loads(stream.getvalue().strip())
        assert "ValueError: bad" in entry["exception"]

    def test_handlers_are_not_duplicated(self):
        _logger("jobportal.tests.dupes")
        second, _ = _logger("jobportal.tests.dupes")

        assert len(second.logger.handlers) == 1


class TestBoundContext:
    """Bound fields ride along on every line."""

    def test_bound_fields_are_merged_into_extra(self):
        logger, stream = _logger("jobportal.tests.bound")
        bound = logger.bind(session_ref="abc123")

        bound.info("restored", extra={"event": "SESSION_RESTORED"})

        entry = json.loads(stream.getvalue().strip())
        assert entry["extra"] == {"session_ref": "abc123", "event": "SESSION_RESTORED"}

    def test_call_extra_overrides_bound_field(self):
        logger, stream = _logger("jobportal.tests.override")
        bound = logger.bind(event="DEFAULT")

        bound.warning("overridden", extra={"event": "SPECIFIC"})

        entry = json.loads(stream.getvalue().strip())
        assert entry["extra"] == {"event": "SPECIFIC"}

    def test_bind_leaves_parent_untouched(self):
        logger, stream = _logger("jobportal.tests.parent")
        bound = logger.bind(session_ref="abc123").bind(user_id="u-1")

        logger.info("plain")

        entry = json.loads(stream.getvalue().strip())
        assert "extra" not in entry
        assert logger.context == {}
        assert bound.context == {"session_ref": "abc123", "user_id": "u-1"}
        assert bound.logger is logger.logger


class TestAuditEvent:
    """Audit lines carry the validated event."""

    def test_audit_line(self):
        logger, stream = _logger("jobportal.tests.audit")

        event = log_audit_event(
            logger, AuditAction.LOGIN, "u-1", details={"role": "employee"},
        )

        entry = json.loads(stream.getvalue().strip())
        assert entry["message"].startswith("AUDIT: ")
        payload = json.loads(entry["message"][len("AUDIT: "):])
        assert payload["action"] == "LOGIN"
        assert payload["entity_id"] == "u-1"
        assert payload["details"] == {"role": "employee"}
        assert entry["extra"] == {"event": "LOGIN", "user_id": "u-1"}
        assert event.entity_type == "Session"
