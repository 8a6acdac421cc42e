#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Exception hierarchy shared by every pipeline component.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

from pathlib import Path
from typing import Optional


class DraftWeaverError(Exception):
    """Base class for all fatal DraftWeaver errors."""
    pass


class ValidationError(DraftWeaverError):
    """Raised when user input or declared resources are unusable."""
    pass


class ParseError(DraftWeaverError):
    """
    Raised when a collaborator's output does not match its expected grammar.

    Attributes:
        offending_text: The text that failed to parse (kept for diagnosis)
    """

    def __init__(self, message: str, offending_text: Optional[str] = None):
        self.offending_text = offending_text
        if offending_text is not None:
            snippet = offending_text.strip()
            if len(snippet) > 500:
                snippet = snippet[:500] + "..."
            message = f"{message}\n--- offending text ---\n{snippet}"
        super().__init__(message)


class StageExecutionError(DraftWeaverError):
    """
    Raised when an external tool exits with a non-zero status.

    Attributes:
        stage: Name of the pipeline stage that failed
        returncode: Exit status of the failed process
        log_path: Stage log file holding the tool's output (if any)
    """

    def __init__(self, stage: str, command: str, returncode: int,
                 log_path: Optional[Path] = None):
        self.stage = stage
        self.command = command
        self.returncode = returncode
        self.log_path = log_path
        message = f"Stage '{stage}' failed (exit {returncode}): {command}"
        if log_path is not None:
            message += f"\nSee log: {log_path}"
        super().__init__(message)


__all__ = [
    "DraftWeaverError",
    "ValidationError",
    "ParseError",
    "StageExecutionError",
]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
