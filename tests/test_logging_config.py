"""Tests for skillladder/core/logging_config.py."""

import logging

import pytest

from skillladder.core.logging_config import (
    COMPACT_FORMAT,
    DEFAULT_FORMAT,
    DETAILED_FORMAT,
    STRUCTURED_FORMAT,
    configure_third_party_loggers,
    setup_logging,
)


class TestSetupLogging:
    """Test setup_logging function."""

    def test_returns_named_logger(self):
        """Test that setup_logging returns a logger with the given name."""
        logger = setup_logging("ladder_test_1")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "ladder_test_1"
        assert logger.level == logging.INFO

    def test_level_as_string(self):
        """Level names are resolved case-insensitively."""
        logger = setup_logging("ladder_test_2", level="debug")
        assert logger.level == logging.DEBUG

    def test_unknown_level_name_falls_back_to_info(self):
        """Unrecognised level names fall back to INFO."""
        logger = setup_logging("ladder_test_3", level="chatty")
        assert logger.level == logging.INFO

    def test_idempotent(self):
        """A second call must not add handlers."""
        first = setup_logging("ladder_test_4")
        count = len(first.handlers)
        second = setup_logging("ladder_test_4")
        assert first is second
        assert len(second.handlers) == count

    def test_console_disabled(self):
        """Test that console=False attaches no stream handler."""
        logger = setup_logging("ladder_test_5", console=False)
        assert not any(type(h) is logging.StreamHandler for h in logger.handlers)

    def test_log_file(self, tmp_path):
        """Test that records reach the log file, creating parent directories."""
        log_file = tmp_path / "nested" / "run.log"
        logger = setup_logging("ladder_test_6", log_file=log_file, console=False)
        logger.info("rung complete")
        for handler in logger.handlers:
            handler.flush()
        assert "rung complete" in log_file.read_text()

    def test_log_dir_uses_logger_name(self, tmp_path):
        """Test that log_dir creates <name>.log."""
        setup_logging("ladder_test_7", log_dir=tmp_path, console=False)
        assert (tmp_path / "ladder_test_7.log").exists()

    def test_same_file_attached_once(self, tmp_path):
        """Test that repeated setup does not duplicate file handlers."""
        log_file = tmp_path / "run.log"
        setup_logging("ladder_test_8", log_file=log_file, console=False)
        logger = setup_logging("ladder_test_8", log_file=log_file, console=False)
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1

    def test_propagate(self):
        """Test that propagation is off unless requested."""
        assert setup_logging("ladder_test_9").propagate is False
        assert setup_logging("ladder_test_10", propagate=True).propagate is True


class TestFormatStyles:
    """Test the format_style option."""

    @pytest.mark.parametrize(
        "style,expected",
        [
            ("default", DEFAULT_FORMAT),
            ("compact", COMPACT_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("structured", STRUCTURED_FORMAT),
            ("nonexistent", DEFAULT_FORMAT),
        ],
    )
    def test_formatter_uses_style(self, style, expected):
        """Test that the console handler uses the requested format."""
        logger = setup_logging(f"ladder_format_{style}", format_style=style)
        stream = [h for h in logger.handlers if type(h) is logging.StreamHandler][0]
        assert stream.formatter._fmt == expected

    def test_file_handler_uses_style(self, tmp_path):
        """Test that the file handler shares the console format."""
        logger = setup_logging(
            "ladder_format_file",
            log_file=tmp_path / "run.log",
            console=False,
            format_style="compact",
        )
        [handler] = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert handler.formatter._fmt == COMPACT_FORMAT

    def test_repeat_call_updates_format(self):
        """Test that a second call changes the format of existing handlers."""
        setup_logging("ladder_format_repeat")
        logger = setup_logging("ladder_format_repeat", format_style="detailed")
        [stream] = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert stream.formatter._fmt == DETAILED_FORMAT


class TestConfigureThirdPartyLoggers:
    """Test configure_third_party_loggers function."""

    def test_quiets_noisy_packages(self):
        """Test that noisy packages are raised to WARNING."""
        configure_third_party_loggers(quiet=True)
        assert logging.getLogger("urllib3").level >= logging.WARNING

    def test_verbose_packages_untouched(self):
        """Test that packages listed as verbose keep their level."""
        logging.getLogger("urllib3").setLevel(logging.INFO)
        configure_third_party_loggers(quiet=True, verbose_packages=["urllib3"])
        assert logging.getLogger("urllib3").level == logging.INFO

    def test_not_quiet_is_noop(self):
        """Test that quiet=False leaves every level alone."""
        logging.getLogger("asyncio").setLevel(logging.DEBUG)
        configure_third_party_loggers(quiet=False)
        assert logging.getLogger("asyncio").level == logging.DEBUG
