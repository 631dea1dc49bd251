"""
Tests for JSON and text log formatting.
"""

import io
import json
import logging
import sys

from token_vesting.logging_config import JSONFormatter, configure_logging


def test_json_formatter_includes_extra_fields():
    logger = logging.getLogger("token_vesting.test_json")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 10, "Released %d", (5,), None,
        extra={"event": "vesting.released", "schedule": "s1"},
    )
    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "Released 5"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "token_vesting.test_json"
    assert entry["event"] == "vesting.released"
    assert entry["schedule"] == "s1"


def test_json_formatter_includes_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.getLogger("x").makeRecord("x", logging.ERROR, __file__, 1, "failed", (), exc_info)
    entry = json.loads(JSONFormatter().format(record))

    assert entry["exception"]["type"] == "ValueError"
    assert entry["exception"]["message"] == "boom"
    assert "Traceback" in entry["exception"]["traceback"]
    assert "exc_info" not in entry


def test_configure_logging_does_not_stack_handlers():
    stream = io.StringIO()
    configure_logging("DEBUG", json_output=True, stream=stream)
    package_logger = configure_logging("DEBUG", json_output=True, stream=stream)

    assert len(package_logger.handlers) == 1
    logging.getLogger("token_vesting.controller").info("hello", extra={"event": "test"})
    line = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert line["message"] == "hello"
    assert line["event"] == "test"


def test_configure_logging_text_format():
    stream = io.StringIO()
    configure_logging("INFO", json_output=False, stream=stream)
    logging.getLogger("token_vesting.ledger").info("pool created")

    assert "INFO" in stream.getvalue()
    assert "token_vesting.ledger: pool created" in stream.getvalue()
