"""
Logging setup for the offline_contacts client.

All modules log through children of the ``offline_contacts`` logger. The CLI
calls setup_logging once per invocation: records go to stderr (colored when
the terminal allows it) and to a dated file under the config directory, which
cleanup_old_logs keeps from growing without bound.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from offline_contacts.utils.paths import resolve_config_dir

ROOT_LOGGER_NAME = "offline_contacts"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_LOG_LEVEL = "OFFLINE_CONTACTS_LOG_LEVEL"
ENV_DEBUG = "OFFLINE_CONTACTS_DEBUG"
ENV_LOG_FILE = "OFFLINE_CONTACTS_LOG_FILE"

# One file per day: offline_contacts_YYYYMMDD.log
LOG_FILE_PREFIX = "offline_contacts_"
LOGS_SUBDIR = "logs"


def supports_color(stream: TextIO) -> bool:
    """True when ``stream`` is a terminal that renders ANSI colors."""
    if not getattr(stream, "isatty", None) or not stream.isatty():
        return False
    # https://no-color.org/
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


class ColoredFormatter(logging.Formatter):
    """Console formatter that tints the level name and message by severity."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and supports_color(sys.stdout)

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color is None:
            return super().format(record)

        # The file handler formats the same record; tint a copy
        tinted = logging.makeLogRecord(record.__dict__)
        tinted.levelname = f"{color}{record.levelname}{self.RESET}"
        tinted.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(tinted)


def get_log_level_from_env() -> int:
    """
    Resolve the console level from the environment.

    OFFLINE_CONTACTS_DEBUG=1 wins; otherwise OFFLINE_CONTACTS_LOG_LEVEL names
    a standard level (WARN is accepted). Anything unrecognised means INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG

    name = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    level = getattr(logging, name, None) if name.isalpha() else None
    return level if isinstance(level, int) else logging.INFO


def _dated_log_name() -> str:
    return f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d')}.log"


def get_log_file_path() -> Optional[Path]:
    """
    Log file for this run.

    OFFLINE_CONTACTS_LOG_FILE overrides the location; "none", "disabled" or an
    empty value turn file logging off. The default is today's file in the
    logs directory of the config directory.
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.lower() in ("none", "disabled", ""):
            return None
        return Path(override)
    return resolve_config_dir() / LOGS_SUBDIR / _dated_log_name()


def _console_handler(level: int, verbose: bool, use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    if use_colors:
        handler.setFormatter(ColoredFormatter(fmt, DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(fmt, DATE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    # Files keep every record, whatever the console shows
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the offline_contacts logger for one CLI run.

    Replaces any handlers from an earlier call, so calling it twice does not
    duplicate output.

    Args:
        level: Console level; None reads it from the environment
        verbose: Force DEBUG and include source locations on the console
        log_dir: Directory for the dated log file
        log_file: Exact log file; takes precedence over log_dir
        enable_file_logging: False logs to the console only
        use_colors: Color console output when the terminal supports it

    Returns:
        The package logger
    """
    if level is None:
        level = get_log_level_from_env()
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(_console_handler(level, verbose, use_colors))

    if not enable_file_logging:
        return logger

    if log_file is not None:
        path: Optional[Path] = log_file
    elif log_dir is not None:
        path = log_dir / _dated_log_name()
    else:
        path = get_log_file_path()

    if path is not None:
        try:
            logger.addHandler(_file_handler(path))
            logger.debug(f"Log file: {path}")
        except OSError as e:
            logger.warning(f"Could not create log file {path}: {e}")

    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the ``keep_count`` newest log files.

    Only files named like the client's own logs are considered. A keep_count
    of 0 or less disables cleanup.

    Returns:
        Number of files deleted
    """
    if keep_count <= 0:
        return 0

    directory = log_dir or resolve_config_dir() / LOGS_SUBDIR
    if not directory.is_dir():
        return 0

    logs = sorted(
        directory.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    deleted = 0
    for stale in logs[keep_count:]:
        try:
            stale.unlink()
        except OSError as e:
            get_logger(__name__).debug(f"Could not remove old log {stale}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger under the offline_contacts hierarchy for ``name``."""
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "supports_color",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "ROOT_LOGGER_NAME",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
]
