#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Read statistics from ``seqtk fqchk``.

Expected report grammar (a hard contract with seqtk):

    min_len: 35; max_len: 151; avg_len: 148.43; 40 distinct quality values
    POS  #bases  %A  %C ...
    ALL  74765268  24.9  25.1 ...

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from ..config.schema import FQCHK_MIN_QUALITY
from ..errors import ParseError
from ..utils.tool_runner import ToolRunner

logger = logging.getLogger(__name__)

_TAG_RE = {
    tag: re.compile(rf'\b{tag}:\s*([0-9]+(?:\.[0-9]+)?)\s*;')
    for tag in ('min_len', 'max_len', 'avg_len')
}
_NUMBER_RE = re.compile(r'^[0-9]+$')


@dataclass(frozen=True)
class ReadStatSummary:
    """Read length and yield summary for one library."""
    min_len: int
    max_len: int
    avg_len: int
    total_bp: int

    def __post_init__(self):
        if not self.min_len <= self.avg_len <= self.max_len:
            raise ParseError(
                f"Inconsistent read lengths: min={self.min_len} "
                f"avg={self.avg_len} max={self.max_len}"
            )
        if self.total_bp <= 0:
            raise ParseError(f"Total base count must be positive, got {self.total_bp}")


def parse_fqchk_report(text: str) -> ReadStatSummary:
    """
    Parse a seqtk fqchk report.

    total_bp is twice the ALL row's base count, approximating both mates
    from the R1 file alone.

    Raises:
        ParseError: If a length tag or the ALL row is missing or malformed
    """
    lengths: Optional[Dict[str, float]] = None
    all_bases: Optional[int] = None

    for line in text.splitlines():
        if lengths is None:
            found = {tag: regex.search(line) for tag, regex in _TAG_RE.items()}
            if all(found.values()):
                lengths = {tag: float(match.group(1)) for tag, match in found.items()}
            continue

        if line.startswith('ALL'):
            fields = line.split()[1:]
            numeric = [f for f in fields if _NUMBER_RE.match(f)]
            if not numeric:
                raise ParseError("Unparsable ALL row in fqchk report", line)
            all_bases = int(numeric[0])
            break

    if lengths is None:
        raise ParseError("fqchk report lacks min_len/max_len/avg_len fields", text)
    if all_bases is None:
        raise ParseError("fqchk report lacks an ALL row", text)

    return ReadStatSummary(
        min_len=int(round(lengths['min_len'])),
        max_len=int(round(lengths['max_len'])),
        avg_len=int(round(lengths['avg_len'])),
        total_bp=2 * all_bases,
    )


def compute_read_stats(
    r1: Path,
    runner: ToolRunner,
    seqtk: str = 'seqtk',
    min_quality: int = FQCHK_MIN_QUALITY,
) -> ReadStatSummary:
    """
    Run seqtk fqchk on the R1 file and parse the report.

    Args:
        r1: Forward read file
        runner: Tool runner
        seqtk: seqtk executable
        min_quality: Base quality threshold passed to fqchk -q
    """
    logger.info(f"Collecting read statistics from {Path(r1).name}")
    report = runner.run('read_stats', [seqtk, 'fqchk', f'-q{min_quality}', str(r1)])
    stats = parse_fqchk_report(report)
    logger.info(f"Read stats: min_len={stats.min_len} max_len={stats.max_len} "
                f"avg_len={stats.avg_len} total_bp={stats.total_bp:,}")
    return stats


__all__ = ["ReadStatSummary", "parse_fqchk_report", "compute_read_stats"]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
