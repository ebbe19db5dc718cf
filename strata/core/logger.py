# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Logging setup for Strata.

Every module logs through a child of the "strata" logger. This module
attaches the console and rotating file handlers to that root once.
Filter output arrives on "strata.filter" and is treated like any other
record.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class StrataLogger:
    """
    Owns the handlers of the "strata" logger hierarchy.

    The console handler follows the requested level; the rotating file
    handler always records DEBUG so a failed run can be inspected later.
    """

    def __init__(
        self,
        name: str = "strata",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        console_output: bool = True,
        file_output: bool = True,
    ):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.handlers.clear()
        self.logger.propagate = False
        self.logger.setLevel(logging.DEBUG)

        if console_output:
            console = logging.StreamHandler(sys.stderr)
            console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
            console.setLevel(self._parse_level(level))
            self.logger.addHandler(console)

        if file_output:
            log_dir = Path(log_dir) if log_dir else Path.home() / ".strata" / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            rotating = RotatingFileHandler(
                log_dir / f"{name}.log",
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
            rotating.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            rotating.setLevel(logging.DEBUG)
            self.logger.addHandler(rotating)

    @staticmethod
    def _parse_level(level: str) -> int:
        """Unknown names fall back to INFO"""
        value = logging.getLevelName(level.upper())
        return value if isinstance(value, int) else logging.INFO

    def set_level(self, level: str):
        """Change the console level; the log file keeps everything"""
        for handler in self.logger.handlers:
            if not isinstance(handler, RotatingFileHandler):
                handler.setLevel(self._parse_level(level))


_root: Optional[StrataLogger] = None


def setup_logging(
    level: Optional[str] = None, log_dir: Optional[Path] = None
) -> StrataLogger:
    """
    Configure the "strata" logger hierarchy.

    STRATA_LOG_LEVEL is used when level isn't given. STRATA_NO_FILE_LOGS=true
    keeps output on the console only.
    """
    global _root

    no_file_logs = os.getenv("STRATA_NO_FILE_LOGS", "false").lower() == "true"
    _root = StrataLogger(
        name="strata",
        level=level or os.getenv("STRATA_LOG_LEVEL", "INFO"),
        log_dir=log_dir,
        file_output=not no_file_logs,
    )
    return _root

