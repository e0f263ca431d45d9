"""
Tests for structured logging configuration.
"""
import json
import logging
import sys

import pytest

from assessment.core.logging_config import JSONFormatter, scoring_context, setup_logging


def make_record(level=logging.INFO, msg="Scored session", **extra):
    record = logging.LogRecord(
        name="assessment.core.scoring.service",
        level=level,
        pathname="/app/service.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter output."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "assessment.core.scoring.service"
        assert entry["message"] == "Scored session"
        assert "timestamp" in entry
        assert "source" not in entry

    def test_structured_extras(self):
        """Known extra= fields are copied into the entry."""
        record = make_record(goal="overview", operation="score_session", duration_ms=1.5, other="x")
        entry = json.loads(JSONFormatter().format(record))
        assert entry["goal"] == "overview"
        assert entry["operation"] == "score_session"
        assert entry["duration_ms"] == 1.5
        assert "other" not in entry

    def test_session_id_from_context(self):
        """Log lines emitted while scoring carry the session id."""
        token = scoring_context.set("session-123")
        try:
            entry = json.loads(JSONFormatter().format(make_record()))
        finally:
            scoring_context.reset(token)
        assert entry["session_id"] == "session-123"

    def test_no_session_id_outside_scoring(self):
        entry = json.loads(JSONFormatter().format(make_record()))
        assert "session_id" not in entry

    def test_error_records_include_source(self):
        entry = json.loads(JSONFormatter().format(make_record(level=logging.ERROR)))
        assert entry["source"] == "/app/service.py:42"

    def test_exception_is_formatted(self):
        try:
            raise ValueError("broken")
        except ValueError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: broken" in entry["exception"]


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture
    def restore_logging(self):
        package_logger = logging.getLogger("assessment")
        root = logging.getLogger()
        saved = (
            package_logger.handlers[:],
            package_logger.propagate,
            package_logger.level,
            root.handlers[:],
            root.level,
        )
        yield
        package_logger.handlers[:] = saved[0]
        package_logger.propagate = saved[1]
        package_logger.setLevel(saved[2])
        root.handlers[:] = saved[3]
        root.setLevel(saved[4])

    def test_configures_package_logger(self, restore_logging):
        setup_logging()

        package_logger = logging.getLogger("assessment")
        assert package_logger.propagate is False
        assert package_logger.handlers
