"""
Tests for the unified logging helpers.
"""

import logging
from unittest.mock import patch

import pytest

from chunkwise.logging_config import Timer, configure_logging, debug_timing, info


class TestTimer:
    def test_measures_duration(self):
        with Timer("noop", auto_log=False) as timer:
            pass

        assert timer.duration_ms is not None
        assert timer.get_duration_ms() >= 0

    def test_duration_unavailable_before_exit(self):
        with pytest.raises(ValueError):
            Timer("pending").get_duration_ms()

    def test_logs_start_and_end(self):
        with patch('chunkwise.logging_config.debug_log') as log:
            with Timer("Re-chunking"):
                pass

        messages = [call.args[0] for call in log.call_args_list]
        assert messages[0] == "Starting Re-chunking..."
        assert messages[1].startswith("Re-chunking took ")

    def test_does_not_suppress_exceptions(self):
        with pytest.raises(RuntimeError):
            with Timer("failing", auto_log=False):
                raise RuntimeError("boom")


class TestDebugTiming:
    @pytest.mark.parametrize("seconds, expected", [
        (0.25, "250 ms"),
        (2.5, "2.50s"),
        (90, "1.5m"),
    ])
    def test_human_readable_units(self, seconds, expected):
        with patch('chunkwise.logging_config.debug_log') as log:
            debug_timing("[SUMMARIZE] step", seconds)

        assert expected in log.call_args.args[0]


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_default_handlers(self):
        yield
        configure_logging()

    def test_debug_adds_stderr_console(self, tmp_path):
        logger = configure_logging(debug=True, log_file=tmp_path / "logs" / "chunkwise.log")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert (tmp_path / "logs").is_dir()

    def test_quiet_mode_logs_to_file_only(self, tmp_path):
        log_file = tmp_path / "chunkwise.log"
        logger = configure_logging(debug=False, log_file=log_file)

        info("[JOBS] hello")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert "[JOBS] hello" in log_file.read_text(encoding='utf-8')

    def test_reconfiguring_replaces_handlers(self, tmp_path):
        configure_logging(debug=True, log_file=tmp_path / "a.log")
        logger = configure_logging(debug=True, log_file=tmp_path / "b.log")

        assert len(logger.handlers) == 2
