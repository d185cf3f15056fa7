import json
import sys
import logging
from bmail_core.logger import JsonFormatter, get_logger


def test_lines_are_valid_json_even_with_quotes():
    record = logging.LogRecord("bmail.test", logging.WARNING, __file__, 1, 'gateway said "no" \\ twice', None, None)
    entry = json.loads(JsonFormatter().format(record))
    assert entry["msg"] == 'gateway said "no" \\ twice'
    assert entry["level"] == "WARNING"
    assert entry["ts"].endswith("Z")


def test_exception_is_included():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("bmail.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    assert "RuntimeError: boom" in json.loads(JsonFormatter().format(record))["exc"]


def test_names_live_under_bmail(monkeypatch):
    monkeypatch.setenv("BMAIL_LOG_LEVEL", "debug")
    log = get_logger("keystore.cache")
    assert log.name == "bmail.keystore.cache"
    assert log.level == logging.DEBUG
    assert get_logger("bmail.pipeline").name == "bmail.pipeline"


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("BMAIL_LOG_LEVEL", "chatty")
    assert get_logger("bmail.level_check").level == logging.INFO
