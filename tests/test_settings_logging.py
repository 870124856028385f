"""
test_settings_logging.py — Configuration and JSON logging.

Place at: tests/test_settings_logging.py
Run from the repo root (folder that contains cdc/).

What this does:
  - Reads CDC_* environment overrides through get_settings().
  - Rejects out-of-range values.
  - Checks components fall back to settings when not given explicit values.
  - Formats a log record with structured extras as one JSON line.

Common examples:
  pytest -q tests/test_settings_logging.py
"""

import io
import json
import logging

import pytest
from pydantic import ValidationError

from cdc.core.settings import LogLevel, Settings, get_settings
from cdc.services.consumer_recorder import ConsumerRecorder
from shared.logging import JSONFormatter, setup_json_logging


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CDC_STUB_PORT", "4567")
    monkeypatch.setenv("CDC_LOG_LEVEL", "debug")
    monkeypatch.setenv("CDC_REQUEST_TIMEOUT_SECS", "2.5")
    monkeypatch.setenv("CDC_CONSUMER_NAME", "weather-client")
    get_settings.cache_clear()
    cfg = get_settings()
    assert cfg.stub_port == 4567
    assert cfg.log_level == LogLevel.DEBUG
    assert cfg.request_timeout_secs == 2.5

    recorder = ConsumerRecorder(provider="weather-api")
    assert (recorder.consumer, recorder.provider, recorder.port) == ("weather-client", "weather-api", 4567)


@pytest.mark.parametrize(
    "field, value",
    [("stub_port", 70000), ("request_timeout_secs", 0), ("verify_workers", 0)],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_json_formatter_includes_extras():
    record = logging.makeLogRecord({
        "name": "cdc.test",
        "levelname": "WARNING",
        "msg": "unmatched stub request",
        "extra": {"method": "GET", "path": "/0,0"},
    })
    payload = json.loads(JSONFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["msg"] == "unmatched stub request"
    assert payload["method"] == "GET"
    assert payload["path"] == "/0,0"


def test_setup_json_logging_writes_json_lines():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    stream = io.StringIO()
    try:
        setup_json_logging("info", stream=stream)
        logging.getLogger("cdc.test").info("stub server started", extra={"extra": {"url": "http://x"}})
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
    line = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert line["msg"] == "stub server started"
    assert line["url"] == "http://x"
