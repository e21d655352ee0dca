"""Logging for skilled-agent.

Everything goes to a rotating file. The terminal belongs to the streamed
answer, so the console handler only exists with ``--verbose`` and never
shows tool faults (the model reports those in its tool result).
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

__all__ = ["setup_logger", "get_logger", "TOOL_FAULT"]

DEFAULT_LOG_FILE = Path("~/.skilled-agent/logs/agent.log").expanduser()
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# Pass as ``extra=TOOL_FAULT`` to keep a record out of the terminal.
TOOL_FAULT = {"tool_fault": True}

_NOISY_LOGGERS = ("litellm", "LiteLLM", "httpx")


class _HideToolFaults(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return not getattr(record, "tool_fault", False)


def setup_logger(
    name: str,
    verbose: bool = False,
    log_file: Union[str, Path, bool, None] = None,
) -> logging.Logger:
    """(Re)configure the package logger.

    ``log_file``: ``None``/``True`` for the default file, ``False`` for none,
    or a path.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter("[%(levelname).1s] %(message)s"))
        console_handler.addFilter(_HideToolFaults())
        logger.addHandler(console_handler)

    log_path = _resolve_log_path(log_file)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"))
        logger.addHandler(file_handler)

    if not logger.handlers:
        # Without this, logging's last-resort handler prints warnings to stderr.
        logger.addHandler(logging.NullHandler())

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _resolve_log_path(log_file: Union[str, Path, bool, None]) -> Path | None:
    if log_file is False:
        return None
    if log_file is None or log_file is True:
        return DEFAULT_LOG_FILE
    return Path(log_file).expanduser()
