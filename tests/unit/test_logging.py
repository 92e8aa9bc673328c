"""Tests for the JSON log formatter."""

import json
import logging

from deployment_assistant.common.logging import JSONFormatter


def _record(**extra):
    record = logging.LogRecord(
        "deployment_assistant.test", logging.WARNING, __file__, 1,
        "Skipping account %s", ("ACC-1",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_message_and_level():
    line = json.loads(JSONFormatter().format(_record()))
    assert line["level"] == "WARNING"
    assert line["message"] == "Skipping account ACC-1"
    assert "account_id" not in line


def test_context_fields_included():
    line = json.loads(JSONFormatter().format(_record(account_id="ACC-1", window=30, other="x")))
    assert line["account_id"] == "ACC-1"
    assert line["window"] == 30
    assert "other" not in line
