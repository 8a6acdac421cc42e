#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Run log — append-only accumulation of progress messages.

Messages from every ``draftweaver.*`` logger are collected in memory and
written to the combined log file when the RunLog scope exits, on success
and on fatal errors alike.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '[%(asctime)s] %(message)s'


class _CollectingHandler(logging.Handler):
    """Keeps every formatted record, in order."""

    def __init__(self, records: List[str]):
        super().__init__()
        self.records = records

    def emit(self, record: logging.LogRecord):
        try:
            self.records.append(self.format(record))
        except Exception:
            self.handleError(record)


class RunLog:
    """
    Scoped run log.

    Usage:
        with RunLog(level='INFO') as run_log:
            run_log.set_log_file(outdir / 'draftweaver.log')
            run_log.logger.info("...")
    """

    def __init__(self, level: str = 'INFO', console: bool = True,
                 logger_name: str = 'draftweaver'):
        self.messages: List[str] = []
        self.log_file: Optional[Path] = None
        self.logger = logging.getLogger(logger_name)
        self._level = getattr(logging, level)
        self._previous_level = self.logger.level
        self._handlers: List[logging.Handler] = []

        collector = _CollectingHandler(self.messages)
        collector.setFormatter(logging.Formatter(LOG_FORMAT))
        self._handlers.append(collector)

        if console:
            stream = logging.StreamHandler(sys.stderr)
            stream.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            self._handlers.append(stream)

    def __enter__(self) -> 'RunLog':
        self.logger.setLevel(self._level)
        for handler in self._handlers:
            handler.setLevel(self._level)
            self.logger.addHandler(handler)
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is not None:
            self.logger.error(f"Aborted: {exc}")
        try:
            self.flush()
        finally:
            for handler in self._handlers:
                self.logger.removeHandler(handler)
                handler.close()
            self.logger.setLevel(self._previous_level)
        return False

    def set_log_file(self, path: Path):
        """Choose where the accumulated messages are persisted."""
        self.log_file = Path(path)

    def flush(self):
        """Write every message collected so far to the log file (if set)."""
        if self.log_file is None:
            return
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_file, 'w') as f:
            for message in self.messages:
                f.write(message + '\n')


__all__ = ["RunLog", "LOG_FORMAT"]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
