"""Logging configuration for toolrelay.

Everything logs under the ``toolrelay`` logger hierarchy. Nothing is emitted
until the host calls ``setup_logging``; hosts that already configure the
root logger can skip it and toolrelay records propagate as usual.

Levels beyond the standard ones:
- VERBOSE (15): per-session lifecycle detail
- TRACE (5): full tool arguments and results, which can be large
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolrelay.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_ENV = "TOOLRELAY_LOG"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("toolrelay")

_initialized = False

_LEVEL_NAMES = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# verbose=N (0=errors only, 4=everything)
_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for ``config``; ``verbose`` wins over ``level``."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        return _LEVEL_NAMES.get(config.level.upper(), logging.INFO)
    return logging.INFO


def _log_path(config: LoggingConfig | None) -> str | None:
    if config is not None and config.file:
        return os.path.expanduser(config.file)
    from_env = os.environ.get(LOG_ENV)
    return os.path.expanduser(from_env) if from_env else None


def _attach(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install toolrelay's handlers. Later calls are no-ops until ``reset_logging``.

    Logs go to ``config.file`` (or ``$TOOLRELAY_LOG``). Without a file,
    stderr is used only when it is a terminal; a host that talks to us over
    pipes gets no stray output.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    path = _log_path(config)
    if path:
        try:
            _attach(logging.FileHandler(path, mode="a", encoding="utf-8"), level)
            return
        except OSError as e:
            if not sys.stderr.isatty():
                return
            print(f"[toolrelay] Failed to open log file {path}: {e}", file=sys.stderr)

    if sys.stderr.isatty():
        _attach(logging.StreamHandler(sys.stderr), level)


def reset_logging() -> None:
    """Remove installed handlers so ``setup_logging`` can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger for a toolrelay area.

    Args:
        name: Child name such as "mcp" or "engine"; None gives the
            package logger itself.
    """
    return logger.getChild(name) if name else logger
