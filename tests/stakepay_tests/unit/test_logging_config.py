"""
Tests for structured JSON logging setup.
"""

import json
import logging
from importlib.metadata import version

import pytest

from stakepay.core.logging_config import CustomJsonFormatter, get_logger, setup_logging


@pytest.fixture
def logger_name(request):
    name = f"stakepay.test.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


def _flush(logger):
    for handler in logger.handlers:
        handler.flush()


class TestSetupLogging:

    def test_writes_json_lines(self, logger_name, tmp_path):
        log_file = tmp_path / "logs" / "paymaster.json"
        logger = setup_logging(
            name=logger_name,
            log_file=str(log_file),
            level="INFO",
            environment="staging",
            enable_console=False,
        )

        logger.info("Settled", extra={"event": "paymaster.settled", "token_cost": 10})
        _flush(logger)

        record = json.loads(log_file.read_text().splitlines()[-1])
        assert record["message"] == "Settled"
        assert record["event"] == "paymaster.settled"
        assert record["token_cost"] == 10
        assert record["environment"] == "staging"
        assert record["service"] == "stakepay"
        assert record["level"] == "info"
        assert "chain_id" in record
        assert record["timestamp"]
        assert record["source"]["function"] == "test_writes_json_lines"

    def test_level_filters_records(self, logger_name, tmp_path):
        log_file = tmp_path / "paymaster.json"
        logger = setup_logging(name=logger_name, log_file=str(log_file), level="warning", enable_console=False)

        logger.info("hidden")
        logger.warning("shown")
        _flush(logger)

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "shown"

    def test_repeated_setup_does_not_duplicate_handlers(self, logger_name):
        setup_logging(name=logger_name, enable_file=False)
        logger = setup_logging(name=logger_name, enable_file=False)

        assert len(logger.handlers) == 1

    def test_unwritable_log_file_falls_back_to_console(self, logger_name, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")

        logger = setup_logging(name=logger_name, log_file=str(blocker / "paymaster.json"))

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)


class TestGetLogger:

    def test_configures_new_logger(self, logger_name):
        logger = get_logger(logger_name)

        assert logger.handlers
        assert isinstance(logger.handlers[0].formatter, CustomJsonFormatter)

    def test_reuses_existing_handlers(self, logger_name):
        first = get_logger(logger_name)
        handlers = list(first.handlers)

        second = get_logger(logger_name)

        assert second is first
        assert second.handlers == handlers


class TestJsonLoggerDependency:

    def test_installed_release_keeps_jsonlogger_module(self):
        assert int(version("python-json-logger").split(".")[0]) < 3
