# pcieaer/log.py
"""Logging setup for the command-line tool. Library modules only log."""
from __future__ import annotations
import logging
import os
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = "WARNING"


def resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.getenv("PCIEAER_LOG_LEVEL") or DEFAULT_LEVEL
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level}")
    return value


def setup_logging(
    level: Union[int, str, None] = None, log_file: Optional[str] = None
) -> None:
    """
    Route all records to one handler: stderr by default, stdout when
    `log_file` is "stdout", otherwise the named file (appended).
    """
    root_logger = logging.getLogger()
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)

    handler: logging.Handler
    if not log_file:
        handler = logging.StreamHandler(sys.stderr)
    elif log_file == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger.setLevel(resolve_level(level))
    root_logger.addHandler(handler)
