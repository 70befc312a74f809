"""Tests for logging helpers."""

import logging
from pathlib import Path

from rich.logging import RichHandler

from huddle.utils import LogCapture, get_logger, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def teardown_method(self) -> None:
        logger = logging.getLogger("huddle")
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_default_level(self) -> None:
        logger = setup_logging()

        assert logger.name == "huddle"
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_verbose(self) -> None:
        logger = setup_logging(verbose=True)

        assert logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_repeated_setup_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_log_file(self, temp_dir: Path) -> None:
        log_file = temp_dir / "logs" / "huddle.log"
        logger = setup_logging(log_file=log_file)

        get_logger("orchestrator.engine").debug("turn finished")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert "huddle.orchestrator.engine - DEBUG - turn finished" in log_file.read_text(encoding="utf-8")


class TestGetLogger:
    """Tests for get_logger."""

    def test_namespaced(self) -> None:
        assert get_logger().name == "huddle"
        assert get_logger("agents").name == "huddle.agents"


class TestLogCapture:
    """Tests for LogCapture."""

    def test_captures_child_loggers(self) -> None:
        with LogCapture() as capture:
            get_logger("orchestrator").info("Agent qa joined")

        assert capture.has_message("qa joined")
        assert capture.records[0].levelno == logging.INFO

    def test_restores_level(self) -> None:
        logger = logging.getLogger("huddle")
        logger.setLevel(logging.ERROR)
        try:
            with LogCapture(level=logging.DEBUG):
                assert logger.level == logging.DEBUG
            assert logger.level == logging.ERROR
        finally:
            logger.setLevel(logging.NOTSET)
