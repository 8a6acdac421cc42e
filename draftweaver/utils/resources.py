#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

CPU and memory budgeting.

Budgets are computed once, before the pipeline starts, from the user's
ceilings and the machine's capacity. Secondary IO-bound helpers (samtools
sort) receive a fixed fraction of the declared ceilings.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import psutil

from ..config.schema import HELPER_MAX_THREADS, HELPER_MEMORY_FRACTION
from ..errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MachineInfo:
    """Host capacity."""
    cores: int
    total_ram_gb: float


@dataclass(frozen=True)
class ResourceBudget:
    """
    Thread and memory allocation for one run.

    Attributes:
        cpus: Threads for primary tools
        ram_gb: Memory ceiling for primary tools (GB)
        helper_cpus: Threads for IO-bound helpers
        helper_mem_mb: Memory per helper thread (MB)
        tmpdir: Scratch directory
    """
    cpus: int
    ram_gb: int
    helper_cpus: int
    helper_mem_mb: int
    tmpdir: Path


def detect_machine() -> MachineInfo:
    """Introspect core count and total RAM."""
    cores = os.cpu_count() or 1
    total_ram_gb = psutil.virtual_memory().total / (1024 ** 3)
    return MachineInfo(cores=cores, total_ram_gb=total_ram_gb)


def resolve_cpus(requested: int, cores: int) -> int:
    """
    Resolve the requested thread count.

    0 means "all cores"; asking for more than the machine has is an error.
    """
    if requested < 0:
        raise ValidationError(f"Invalid --cpus {requested}: must be >= 0")
    if requested == 0:
        return cores
    if requested > cores:
        raise ValidationError(
            f"Requested {requested} CPUs but this machine only has {cores}"
        )
    return requested


def check_memory(ram_gb: float, total_ram_gb: float) -> int:
    """Validate the memory ceiling against installed RAM; returns whole GB."""
    if ram_gb <= 0:
        raise ValidationError(f"Invalid --ram {ram_gb}: must be > 0")
    if ram_gb > total_ram_gb:
        raise ValidationError(
            f"Requested {ram_gb} GB RAM but this machine only has {total_ram_gb:.1f} GB"
        )
    return max(1, int(ram_gb))


def helper_threads(cpus: int) -> int:
    """
    Threads for an IO-bound helper piped after a primary tool.

    A quarter of the cores, never fewer than 1 nor more than 4.
    """
    return max(1, min(HELPER_MAX_THREADS, cpus // 4))


def helper_memory_mb(ram_gb: int, threads: int) -> int:
    """Per-thread memory (MB) for a helper holding a fixed fraction of the ceiling."""
    return max(1, int(ram_gb * 1024 * HELPER_MEMORY_FRACTION / threads))


def build_budget(
    cpus: int,
    ram_gb: float,
    tmpdir: Optional[str] = None,
    machine: Optional[MachineInfo] = None,
) -> ResourceBudget:
    """
    Validate user ceilings and derive the run's resource budget.

    Args:
        cpus: Requested threads (0 = all)
        ram_gb: Requested memory ceiling in GB
        tmpdir: Scratch directory (default: system temp)
        machine: Host capacity (detected when omitted)

    Raises:
        ValidationError: If requests exceed capacity or tmpdir is missing
    """
    machine = machine or detect_machine()
    threads = resolve_cpus(cpus, machine.cores)
    ram = check_memory(ram_gb, machine.total_ram_gb)

    scratch = Path(tmpdir) if tmpdir else Path(tempfile.gettempdir())
    if not scratch.is_dir():
        raise ValidationError(f"Temporary directory not found: {scratch}")

    h_threads = helper_threads(threads)
    budget = ResourceBudget(
        cpus=threads,
        ram_gb=ram,
        helper_cpus=h_threads,
        helper_mem_mb=helper_memory_mb(ram, h_threads),
        tmpdir=scratch,
    )
    logger.info(f"Using {budget.cpus} CPUs (helpers: {budget.helper_cpus} x "
                f"{budget.helper_mem_mb} MB) and {budget.ram_gb} GB RAM; tmpdir {scratch}")
    return budget


__all__ = [
    "MachineInfo",
    "ResourceBudget",
    "detect_machine",
    "resolve_cpus",
    "check_memory",
    "helper_threads",
    "helper_memory_mb",
    "build_budget",
]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
