#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Genome size: parsed from a user string or estimated with KMC.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import re
from pathlib import Path
from typing import Optional

from ..config.schema import KMC_KMER, KMC_MIN_COUNT
from ..errors import ParseError, ValidationError
from ..utils.tool_runner import ToolRunner

logger = logging.getLogger(__name__)

_SIZE_RE = re.compile(r'^\s*([0-9]*\.?[0-9]+)\s*([KMG]?)\s*$', re.IGNORECASE)
_MULTIPLIER = {'': 1, 'K': 1_000, 'M': 1_000_000, 'G': 1_000_000_000}
_TRAILING_INT_RE = re.compile(r'([0-9]+)\s*$')


def parse_genome_size(text: str) -> int:
    """
    Parse ``<number><K|M|G>`` (unit optional, case-insensitive) into bases.

    Example:
        >>> parse_genome_size("4.6M")
        4600000

    Raises:
        ValidationError: On any other format or a non-positive size
    """
    match = _SIZE_RE.match(text or '')
    if not match:
        raise ValidationError(f"Can't parse genome size '{text}' (expected e.g. 4.6M, 950K, 5000000)")

    number, unit = match.groups()
    size = int(round(float(number) * _MULTIPLIER[unit.upper()]))
    if size <= 0:
        raise ValidationError(f"Genome size must be positive, got '{text}'")
    return size


def parse_kmc_summary(text: str) -> int:
    """
    Extract the unique k-mer count from KMC's summary.

    The relevant line looks like::

        No. of unique counted k-mers       :      4636528

    Raises:
        ParseError: If the line or its trailing integer is missing
    """
    for line in text.splitlines():
        if 'unique counted' in line:
            match = _TRAILING_INT_RE.search(line)
            if not match:
                raise ParseError("KMC 'unique counted' line has no trailing integer", line)
            size = int(match.group(1))
            if size <= 0:
                raise ParseError("KMC reported zero unique k-mers", line)
            return size

    raise ParseError("KMC output lacks a 'unique counted' line", text)


def estimate_genome_size(
    r1: Path,
    runner: ToolRunner,
    workdir: Path,
    threads: int = 1,
    ram_gb: int = 4,
    kmc: str = 'kmc',
) -> int:
    """
    Estimate genome size as the number of solid (count >= 3) 25-mers in R1.

    Args:
        r1: Forward read file
        runner: Tool runner
        workdir: Directory for KMC's database and scratch files
        threads: KMC threads
        ram_gb: KMC memory ceiling
        kmc: KMC executable
    """
    scratch = Path(workdir) / 'kmc_tmp'
    scratch.mkdir(parents=True, exist_ok=True)
    output = runner.run('genome_size', [
        kmc, '-sm', f'-m{ram_gb}', f'-t{threads}',
        f'-k{KMC_KMER}', f'-ci{KMC_MIN_COUNT}',
        str(r1), str(Path(workdir) / 'kmc'), str(scratch),
    ])
    return parse_kmc_summary(output)


def resolve_genome_size(
    gsize: Optional[str],
    r1: Path,
    runner: ToolRunner,
    workdir: Path,
    threads: int = 1,
    ram_gb: int = 4,
    kmc: str = 'kmc',
) -> int:
    """Use the user's estimate when given, otherwise estimate with KMC."""
    if gsize:
        size = parse_genome_size(str(gsize))
        logger.info(f"Using genome size {size:,} bp (user supplied '{gsize}')")
        return size

    logger.info("Estimating genome size with KMC")
    size = estimate_genome_size(r1, runner, workdir, threads, ram_gb, kmc)
    logger.info(f"Estimated genome size: {size:,} bp")
    return size


__all__ = [
    "parse_genome_size",
    "parse_kmc_summary",
    "estimate_genome_size",
    "resolve_genome_size",
]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
