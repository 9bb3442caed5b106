"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from s3append.logging_config import ContextTextFormatter, JSONFormatter, configure_logging


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="s3append.appender",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    botocore_level = logging.getLogger("botocore").level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("botocore").setLevel(botocore_level)


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "s3append.appender"
        assert entry["message"] == "hello world"
        assert "timestamp" in entry

    def test_append_extras_included(self):
        record = _record(bucket="b", key="k", upload_id="uid", strategy="multipart", part_number=3)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["bucket"] == "b"
        assert entry["key"] == "k"
        assert entry["upload_id"] == "uid"
        assert entry["strategy"] == "multipart"
        assert entry["part_number"] == 3

    def test_unset_extras_omitted(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert "upload_id" not in entry
        assert "part_number" not in entry

    def test_exception_rendered(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_json_format(self, restore_root_logger):
        configure_logging(level="DEBUG", fmt="json")
        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_text_format_replaces_handlers(self, restore_root_logger):
        root = restore_root_logger
        root.addHandler(logging.NullHandler())
        configure_logging(level="warning", fmt="text")
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ContextTextFormatter)

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        configure_logging(level="chatty")
        assert restore_root_logger.level == logging.INFO

    def test_client_loggers_quiet_unless_debugging(self, restore_root_logger):
        configure_logging(level="INFO")
        assert logging.getLogger("botocore").level == logging.WARNING
        configure_logging(level="DEBUG")
        assert logging.getLogger("botocore").level == logging.DEBUG


class TestContextTextFormatter:
    """Tests for ContextTextFormatter."""

    def test_context_suffix(self):
        line = ContextTextFormatter().format(_record(bucket="b", key="k", part_number=2))
        assert line.endswith("s3append.appender: hello world [bucket=b key=k part_number=2]")

    def test_no_context_no_suffix(self):
        line = ContextTextFormatter().format(_record())
        assert line.endswith("s3append.appender: hello world")
