"""
Unit tests for jobref/common/error_handling.py and jobref/common/logger.py
"""

import json
import logging

import pytest

from jobref.common.error_handling import (
    ExtractionError,
    FetchError,
    GenerationError,
    error_message,
    log_on_exception,
    safe_execute,
)
from jobref.common.logger import JsonFormatter, RunLogger, get_logger


class TestErrorTypes:
    def test_stage_tags(self):
        assert FetchError("x").stage == "fetch"
        assert ExtractionError("x", field="title").stage == "extract"
        assert GenerationError("x").stage == "generate"

    def test_error_message_falls_back_to_type_name(self):
        assert error_message(FetchError("  Job page not found ")) == "Job page not found"
        assert error_message(RuntimeError()) == "RuntimeError"


class TestLogOnException:
    def test_logs_and_reraises(self, caplog):
        logger = logging.getLogger("test.log_on_exception")
        with caplog.at_level(logging.WARNING, logger="test.log_on_exception"):
            with pytest.raises(FetchError):
                with log_on_exception(logger, "fetch page"):
                    raise FetchError("Network error: boom")

        assert "[fetch page] FetchError: Network error: boom" in caplog.text

    def test_silent_on_success(self, caplog):
        logger = logging.getLogger("test.log_on_exception")
        with caplog.at_level(logging.WARNING, logger="test.log_on_exception"):
            with log_on_exception(logger, "fetch page"):
                pass
        assert caplog.text == ""


class TestSafeExecute:
    def test_returns_result(self):
        assert safe_execute(lambda a, b: a + b, 1, 2) == 3

    def test_fallback_value_and_factory(self):
        def broken():
            raise ValueError("bad markup")

        assert safe_execute(broken, fallback="none") == "none"
        first = safe_execute(broken, fallback=list)
        second = safe_execute(broken, fallback=list)
        assert first == [] and first is not second


class TestRunLogger:
    def test_prefixes_job_and_stage(self, caplog):
        log = get_logger("test.run_logger", job_id="anon:job:abc", stage="extract")
        assert isinstance(log, RunLogger)
        assert log.logger is logging.getLogger("test.run_logger")

        with caplog.at_level(logging.INFO, logger="test.run_logger"):
            log.info("Extracted: Engineer at Acme")

        assert "[anon:job:abc] [extract] Extracted: Engineer at Acme" in caplog.text
        assert caplog.records[0].stage == "extract"

    def test_debug_mode_lowers_level(self):
        logging.getLogger("test.run_logger.debug").setLevel(logging.INFO)
        log = get_logger("test.run_logger.debug", debug_mode=True)
        assert log.logger.level == logging.DEBUG

    def test_json_formatter_escapes_message(self):
        record = logging.LogRecord("jobref", logging.INFO, __file__, 1, 'said "hi"', None, None)
        record.job_id = "anon:job:abc"
        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == 'said "hi"'
        assert payload["job_id"] == "anon:job:abc"
        assert "stage" not in payload
