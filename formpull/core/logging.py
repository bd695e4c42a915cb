"""
Logging for pulls: rich console output plus an optional plain log file

Pull units run on worker threads, so file records carry the thread name
to tell interleaved pulls apart.
"""
import sys
import logging
from typing import Optional
from pathlib import Path

from rich.logging import RichHandler
from rich.console import Console
from rich.traceback import install as install_traceback

from .constants import DEFAULT_LOG_LEVEL


# stdout carries tables and summaries, stderr carries logs and errors
_stdout_console = Console(file=sys.stdout)
_stderr_console = Console(file=sys.stderr)

_FILE_FORMAT = '%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s'

# paramiko logs every channel and key exchange at INFO
_QUIETED_LOGGERS = ("paramiko", "paramiko.transport")


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=_stderr_console,
        show_path=level <= logging.DEBUG,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(level)
    return handler


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    log_file = Path(log_file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    return handler


def setup_logging(level: str = DEFAULT_LOG_LEVEL, log_file: Optional[Path] = None) -> None:
    """
    Route all loggers to the stderr console, and to log_file when given.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            unknown names fall back to INFO
        log_file: Optional path of a plain text log
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    install_traceback(console=_stderr_console, width=120)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_console_handler(log_level))
    if log_file:
        root_logger.addHandler(_file_handler(log_file, log_level))

    quiet_level = logging.NOTSET if log_level <= logging.DEBUG else logging.WARNING
    for name in _QUIETED_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_stdout_console() -> Console:
    return _stdout_console


def get_stderr_console() -> Console:
    return _stderr_console
