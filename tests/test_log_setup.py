"""Tests for log_setup.py — shared handlers, log location and console level."""

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

# Add parent dir to path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

import log_setup


def terminal_handlers(logger):
    return [h for h in logger.handlers if type(h) is logging.StreamHandler]


def file_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, logging.FileHandler)]


@pytest.fixture
def log_dir(tmp_path):
    """Point the log files at tmp_path for one test, then put them back."""
    previous = log_setup._log_dir
    log_setup.use_log_dir(str(tmp_path))
    yield tmp_path
    log_setup.use_log_dir(previous)


# ---------------------------------------------------------------------------
# get_logger()
# ---------------------------------------------------------------------------

class TestGetLogger:
    def test_handlers_added_once(self, log_dir):
        first = log_setup.get_logger("test-once")
        second = log_setup.get_logger("test-once")
        assert first is second
        assert len(first.handlers) == 3

    def test_file_handlers_shared_between_loggers(self, log_dir):
        a = log_setup.get_logger("test-shared-a")
        b = log_setup.get_logger("test-shared-b")
        assert file_handlers(a) == file_handlers(b)
        assert terminal_handlers(a)[0] is not terminal_handlers(b)[0]

    def test_terminal_is_info_by_default(self, log_dir):
        logger = log_setup.get_logger("test-terminal-default")
        assert terminal_handlers(logger)[0].level == logging.INFO

    def test_writes_both_files(self, log_dir):
        log_setup.get_logger("test-files").debug("hello files")
        for handler in file_handlers(log_setup.get_logger("test-files")):
            handler.flush()

        assert "test-files: hello files" in (log_dir / "latest.log").read_text()
        assert "hello files" in (log_dir / "backup.log").read_text()

    def test_archive_rolls_over_at_midnight(self, log_dir):
        archive = [h for h in file_handlers(log_setup.get_logger("test-roll"))
                   if isinstance(h, TimedRotatingFileHandler)]
        assert len(archive) == 1
        assert archive[0].when == "MIDNIGHT"
        assert archive[0].namer("/logs/backup.log.2024-01-08") == "/logs/backup.2024-01-08.log"


# ---------------------------------------------------------------------------
# Log location
# ---------------------------------------------------------------------------

class TestDefaultLogDir:
    def test_under_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv(log_setup.LOG_DIR_ENV, raising=False)
        monkeypatch.chdir(tmp_path)
        assert log_setup.default_log_dir() == os.path.join(str(tmp_path), "logs")

    def test_environment_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv(log_setup.LOG_DIR_ENV, str(tmp_path / "elsewhere"))
        assert log_setup.default_log_dir() == str(tmp_path / "elsewhere")

    def test_not_next_to_module(self, tmp_path, monkeypatch):
        monkeypatch.delenv(log_setup.LOG_DIR_ENV, raising=False)
        monkeypatch.chdir(tmp_path)
        module_dir = os.path.dirname(os.path.abspath(log_setup.__file__))
        assert not log_setup.default_log_dir().startswith(os.path.join(module_dir, "logs"))


class TestUseLogDir:
    def test_moves_existing_loggers(self, log_dir, tmp_path):
        logger = log_setup.get_logger("test-move")
        target = tmp_path / "moved"

        log_setup.use_log_dir(str(target))
        logger.info("after the move")
        for handler in file_handlers(logger):
            handler.flush()

        assert log_setup.session_log_path() == str(target / "latest.log")
        assert "after the move" in (target / "latest.log").read_text()
        assert len(file_handlers(logger)) == 2


# ---------------------------------------------------------------------------
# reset_latest() / set_console_level()
# ---------------------------------------------------------------------------

class TestResetLatest:
    def test_truncates(self, log_dir):
        log_setup.get_logger("test-reset").info("something")
        log_setup.reset_latest()
        assert os.path.getsize(log_setup.session_log_path()) == 0


class TestSetConsoleLevel:
    def test_changes_every_terminal_handler(self, log_dir):
        a = log_setup.get_logger("test-level-a")
        b = log_setup.get_logger("test-level-b")
        try:
            log_setup.set_console_level(logging.DEBUG)
            assert terminal_handlers(a)[0].level == logging.DEBUG
            assert terminal_handlers(b)[0].level == logging.DEBUG
            assert all(h.level == logging.DEBUG for h in file_handlers(a))
        finally:
            log_setup.set_console_level(logging.INFO)
