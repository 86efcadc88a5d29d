"""Logging for the weekly backup.

Every module logs through get_logger(name). Records go to the terminal and to
two files in the log directory: latest.log, emptied at the start of each run,
and backup.log, which rolls over at midnight into backup.YYYY-MM-DD.log.

The log directory is WEEKLY_BACKUP_LOG_DIR when set, otherwise logs/ under the
directory the tool is run from. use_log_dir() overrides both.
"""

import logging
import os
from logging.handlers import TimedRotatingFileHandler

LOG_DIR_ENV = "WEEKLY_BACKUP_LOG_DIR"
SESSION_LOG = "latest.log"
ARCHIVE_LOG = "backup.log"

_FILE_FMT = logging.Formatter(
    "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
_TERMINAL_FMT = logging.Formatter("%(message)s")

_log_dir = None
_loggers = []
_file_handlers = []
_terminal_handlers = []


def default_log_dir():
    """WEEKLY_BACKUP_LOG_DIR if set, else logs/ under the working directory."""
    return os.environ.get(LOG_DIR_ENV) or os.path.join(os.getcwd(), "logs")


def log_dir():
    return _log_dir or default_log_dir()


def session_log_path():
    return os.path.join(log_dir(), SESSION_LOG)


def archive_log_path():
    return os.path.join(log_dir(), ARCHIVE_LOG)


def _archive_name(name):
    # backup.log.2024-01-08 -> backup.2024-01-08.log
    return name.replace(".log.", ".") + ".log"


def _open_file_handlers():
    os.makedirs(log_dir(), exist_ok=True)

    session = logging.FileHandler(session_log_path(), mode="a", encoding="utf-8")
    archive = TimedRotatingFileHandler(archive_log_path(), when="midnight", encoding="utf-8")
    archive.namer = _archive_name

    for handler in (session, archive):
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(_FILE_FMT)
    return [session, archive]


def _shared_file_handlers():
    if not _file_handlers:
        _file_handlers.extend(_open_file_handlers())
    return _file_handlers


def get_logger(name):
    """Return a named logger writing to the terminal and both log files."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if logger in _loggers:
        return logger

    terminal = logging.StreamHandler()
    terminal.setLevel(logging.INFO)
    terminal.setFormatter(_TERMINAL_FMT)
    _terminal_handlers.append(terminal)

    logger.addHandler(terminal)
    for handler in _shared_file_handlers():
        logger.addHandler(handler)
    _loggers.append(logger)
    return logger


def use_log_dir(path):
    """Write log files under path from now on, moving loggers created earlier."""
    global _log_dir
    _log_dir = path
    if not _file_handlers:
        return

    old = list(_file_handlers)
    _file_handlers[:] = _open_file_handlers()
    for logger in _loggers:
        for handler in old:
            logger.removeHandler(handler)
        for handler in _file_handlers:
            logger.addHandler(handler)
    for handler in old:
        handler.close()


def reset_latest():
    """Empty latest.log so it only holds the current run."""
    os.makedirs(log_dir(), exist_ok=True)
    open(session_log_path(), "w").close()


def set_console_level(level):
    """Change what reaches the terminal; the log files always get DEBUG."""
    for handler in _terminal_handlers:
        handler.setLevel(level)
