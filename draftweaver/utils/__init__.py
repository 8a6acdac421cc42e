"""
DraftWeaver v0.1.0

Utilities module for DraftWeaver.

This module provides the run infrastructure:
- tool_runner.py - external tool execution with numbered stage logs
- resources.py - CPU / memory budgeting
- run_log.py - combined run log
- pipeline.py - master orchestrator (import from draftweaver.utils.pipeline)
"""

from .tool_runner import ToolCall, ToolRunner
from .resources import (
    MachineInfo,
    ResourceBudget,
    detect_machine,
    resolve_cpus,
    check_memory,
    helper_threads,
    helper_memory_mb,
    build_budget,
)
from .run_log import RunLog, LOG_FORMAT

__all__ = [
    # Tool execution
    "ToolCall",
    "ToolRunner",
    # Resources
    "MachineInfo",
    "ResourceBudget",
    "detect_machine",
    "resolve_cpus",
    "check_memory",
    "helper_threads",
    "helper_memory_mb",
    "build_budget",
    # Logging
    "RunLog",
    "LOG_FORMAT",
]
