"""Tests for the JSON log formatter."""

import json
import logging
import sys

from partner_import.logging_config import JsonFormatter, configure_logging


def _record(**extra):
    record = logging.LogRecord(
        "partner_import.session", logging.INFO, __file__, 1, "Pulled %d entries", (25,), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_one_json_object_with_extras():
    line = JsonFormatter().format(_record(session_id="abc", phase="USERS", entries=25))
    entry = json.loads(line)

    assert entry["level"] == "INFO"
    assert entry["logger"] == "partner_import.session"
    assert entry["message"] == "Pulled 25 entries"
    assert entry["session_id"] == "abc"
    assert entry["phase"] == "USERS"
    assert entry["entries"] == 25
    assert "customer_id" not in entry


def test_unknown_extras_are_not_emitted():
    entry = json.loads(JsonFormatter().format(_record(password="hunter2")))
    assert "password" not in entry


def test_exception_is_included():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord(
            "partner_import", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )
    entry = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in entry["exception"]


def test_configure_logging_installs_single_handler():
    configure_logging("debug")
    configure_logging("debug")
    logger = logging.getLogger("partner_import")

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)
    assert logger.propagate is False


def test_urllib3_is_held_at_warning():
    configure_logging("debug")
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_non_serialisable_extra_is_stringified():
    entry = json.loads(JsonFormatter().format(_record(run_id=object())))
    assert entry["run_id"].startswith("<object object")
