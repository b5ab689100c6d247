"""Tests for logger module."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from relaycord.util.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    NOISY_LOGGERS,
    ColorFormatter,
    PromptToolkitHandler,
    get_logger,
    handle_exception,
    setup_logger,
    should_use_color,
)


def make_record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
        func="test_func",
    )


class TestShouldUseColor:
    """Tests for should_use_color function."""

    @patch('sys.stderr.isatty')
    def test_should_use_color_tty(self, mock_isatty):
        mock_isatty.return_value = True
        assert should_use_color() is True

    @patch('sys.stderr.isatty')
    def test_should_use_color_no_tty(self, mock_isatty):
        mock_isatty.return_value = False
        assert should_use_color() is False

    @patch('sys.stderr.isatty')
    def test_should_use_color_exception(self, mock_isatty):
        """Test color returns False on exception."""
        mock_isatty.side_effect = Exception("Error")
        assert should_use_color() is False


class TestColorFormatter:

    def test_error_is_wrapped_in_red(self):
        formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        formatted = formatter.format(make_record(logging.ERROR, "Error message"))

        assert formatted.startswith("\033[31m")
        assert formatted.endswith("\033[0m")
        assert "Error message" in formatted

    def test_debug_is_cyan(self):
        formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        assert formatter.format(make_record(logging.DEBUG, "Debug message")).startswith("\033[36m")


class TestPromptToolkitHandler:

    @patch('relaycord.util.logger.print_formatted_text')
    def test_emit_prints_through_prompt_toolkit(self, mock_print):
        handler = PromptToolkitHandler(formatter=logging.Formatter("%(message)s"))

        handler.emit(make_record(logging.INFO, "hello"))

        mock_print.assert_called_once()


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_setup_logger_creates_logger(self):
        logger = setup_logger("relaycord_test_logger_1")

        assert logger.name == "relaycord_test_logger_1"
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_setup_logger_returns_existing(self):
        logger1 = setup_logger("relaycord_test_logger_2")
        logger2 = setup_logger("relaycord_test_logger_2")

        assert logger1 is logger2
        assert len(logger2.handlers) == 2

    def test_setup_logger_has_console_and_rotating_file(self):
        logger = setup_logger("relaycord_test_logger_3")

        kinds = {type(handler) for handler in logger.handlers}
        assert kinds == {PromptToolkitHandler, RotatingFileHandler}

    def test_get_logger_is_setup_logger(self):
        assert get_logger("relaycord_test_logger_4") is setup_logger("relaycord_test_logger_4")


class TestNoisyLibraries:

    def test_library_loggers_are_quieted(self):
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.ERROR


class TestHandleException:

    @patch('sys.__excepthook__')
    def test_keyboard_interrupt_goes_to_default_hook(self, mock_hook):
        handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)
        mock_hook.assert_called_once()

    @patch('relaycord.util.logger.logging.error')
    def test_other_exceptions_are_logged(self, mock_error):
        error = ValueError("boom")
        handle_exception(ValueError, error, None)
        mock_error.assert_called_once()
