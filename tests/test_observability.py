"""
Structured logging tests.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import io
import json

import pytest

from dauth.observability import (
    DAuthComponent,
    LogEvent,
    configure_logging,
    correlation_id_var,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    timed_operation,
)


@pytest.fixture
def stream():
    return io.StringIO()


def _lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestStructuredLogging:
    """JSON-lines output from DAuthLogger."""

    def test_json_line_fields(self, stream):
        configure_logging("debug", "json", stream)
        token = set_correlation_id("corr-test")
        try:
            get_logger("registry", DAuthComponent.USERS).info("User initialized", operation="inituser", username=100)
        finally:
            correlation_id_var.reset(token)

        (line,) = _lines(stream)
        assert line["level"] == "info"
        assert line["logger"] == "dauth.users.registry"
        assert line["component"] == "users"
        assert line["operation"] == "inituser"
        assert line["correlation_id"] == "corr-test"
        assert line["context"] == {"username": 100}

    def test_level_filtering(self, stream):
        configure_logging("warning", "json", stream)
        logger = get_logger("store", DAuthComponent.STORAGE)

        logger.info("hidden")
        logger.warning("shown", error_code="storage_error")

        (line,) = _lines(stream)
        assert line["message"] == "shown"
        assert line["error_code"] == "storage_error"

    def test_text_format(self, stream):
        configure_logging("info", "text", stream)

        get_logger("contract", DAuthComponent.CONTRACT).warning("Action addork rejected", actor="orknode2")

        out = stream.getvalue()
        assert "WARNING" in out
        assert "dauth.contract.contract: Action addork rejected" in out
        assert "actor=orknode2" in out

    def test_reconfigure_replaces_handler(self, stream):
        first = io.StringIO()
        configure_logging("info", "json", first)
        configure_logging("info", "json", stream)

        get_logger("x", DAuthComponent.CLI).info("once")

        assert first.getvalue() == ""
        assert len(_lines(stream)) == 1

    def test_empty_fields_omitted(self):
        event = LogEvent(timestamp="t", level="info", logger="dauth", message="m")

        assert set(event.to_dict()) == {"timestamp", "level", "logger", "message"}


class TestTimedOperation:
    """Decorator logs completion with duration."""

    def test_success(self, stream):
        configure_logging("info", "json", stream)
        logger = get_logger("cli", DAuthComponent.CLI)

        @timed_operation(logger, "work")
        def work():
            return 42

        assert work() == 42
        (line,) = _lines(stream)
        assert line["message"] == "Operation work completed"
        assert line["duration_ms"] >= 0

    def test_failure_reraises(self, stream):
        configure_logging("info", "json", stream)
        logger = get_logger("cli", DAuthComponent.CLI)

        @timed_operation(logger, "work")
        def work():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            work()
        (line,) = _lines(stream)
        assert line["level"] == "warning"
        assert line["message"] == "Operation work failed"


def test_correlation_id_is_stable():
    assert get_correlation_id() == get_correlation_id()
    assert get_correlation_id().startswith("corr-")


def test_contract_logs_never_carry_fragment_secrets(stream, contract, vendor, ork):
    configure_logging("debug", "json", stream)

    contract.inituser(vendor, 100, 99999)
    contract.addork(ork, 100, "k", "u")
    contract.postfragment(ork, 1, 100, 7, "TOP_SECRET_FRAG", "PUB", "SECRET_HASH")

    out = stream.getvalue()
    assert "postfragment" in out
    assert "TOP_SECRET_FRAG" not in out
    assert "SECRET_HASH" not in out
