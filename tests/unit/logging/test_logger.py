# tests/unit/logging/test_logger.py — v1
"""Tests for logging/logger.py — formatters and setup."""

from __future__ import annotations

import json
import logging

from bizimages.logging.context import clear_context, set_entity_context, set_job_context
from bizimages.logging.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    TextFormatter,
    get_logger,
    setup_logging,
)


def _record(msg: str = "hello %s", args: tuple = ("world",)) -> logging.LogRecord:
    return logging.LogRecord(
        name="bizimages.test", level=logging.INFO, pathname=__file__,
        lineno=1, msg=msg, args=args, exc_info=None,
    )


class TestJsonFormatter:
    def teardown_method(self):
        clear_context()

    def test_basic_fields(self):
        out = json.loads(JsonFormatter().format(_record()))
        assert out["level"] == "INFO"
        assert out["message"] == "hello world"
        assert out["logger"] == "bizimages.test"
        assert "context" not in out

    def test_context_injected(self):
        set_job_context("batch_9")
        set_entity_context("biz_1", "biz_1:logo:0")
        out = json.loads(JsonFormatter().format(_record()))
        assert out["context"] == {"job_id": "batch_9", "entity_id": "biz_1", "slot": "biz_1:logo:0"}

    def test_extra_data(self):
        record = _record()
        record.data = {"bytes": 2048}
        out = json.loads(JsonFormatter().format(record))
        assert out["data"] == {"bytes": 2048}


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_includes_job_and_slot(self):
        set_job_context("batch_9")
        set_entity_context("biz_1", "biz_1:photo:2")
        text = TextFormatter().format(_record())
        assert "[job batch_9]" in text
        assert "(biz_1:photo:2)" in text
        assert text.endswith("hello world")


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger(ROOT_LOGGER).handlers.clear()

    def test_get_logger_namespaced(self):
        assert get_logger("batch").name == "bizimages.batch"

    def test_setup_replaces_handlers(self):
        setup_logging(level="DEBUG", log_format="text")
        setup_logging(level="WARNING", log_format="json")
        root = logging.getLogger(ROOT_LOGGER)
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_with_file(self, tmp_path):
        log_file = tmp_path / "app.log"
        setup_logging(log_format="json", log_file=str(log_file))
        root = logging.getLogger(ROOT_LOGGER)
        assert len(root.handlers) == 2
        get_logger("test").warning("written")
        for h in root.handlers:
            h.flush()
        assert "written" in log_file.read_text(encoding="utf-8")
        for h in root.handlers:
            h.close()
