#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Depth estimation and subsampling.

Excess depth costs assembler time and memory without improving the
assembly past saturation, so reads are subsampled down to a target depth
when the measured depth is well above it.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config.schema import DEPTH_GUARD, MIN_SAMPLING_FACTOR, SUBSAMPLE_SEED
from ..io_utils import ReadPair
from ..utils.tool_runner import ToolRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DepthPlan:
    """
    Attributes:
        original_depth: floor(total_bp / genome_size)
        target_depth: Requested depth (0 = no subsampling)
        sampling_factor: Fraction of reads to keep, or None to keep all
    """
    original_depth: int
    target_depth: int
    sampling_factor: Optional[float] = None

    @property
    def subsample(self) -> bool:
        return self.sampling_factor is not None


def plan_depth(total_bp: int, genome_size: int, target_depth: int) -> DepthPlan:
    """
    Decide whether to subsample.

    Subsampling happens only when a target is set and the original depth
    exceeds DEPTH_GUARD times the target.

    Example:
        >>> plan_depth(150 * 1000, 1000, 100).sampling_factor
        0.667
    """
    original_depth = total_bp // genome_size
    factor = None
    if target_depth > 0 and original_depth > DEPTH_GUARD * target_depth:
        factor = round(target_depth / original_depth, 3)
        if factor < MIN_SAMPLING_FACTOR:
            logger.warning(f"Sampling factor for {target_depth}x of {original_depth}x rounds "
                           f"to zero; keeping {MIN_SAMPLING_FACTOR} of the reads instead")
            factor = MIN_SAMPLING_FACTOR
    return DepthPlan(original_depth=original_depth, target_depth=target_depth,
                     sampling_factor=factor)


def apply_depth_plan(
    plan: DepthPlan,
    reads: ReadPair,
    runner: ToolRunner,
    workdir: Path,
    seqtk: str = 'seqtk',
) -> ReadPair:
    """
    Subsample both mates by the plan's factor, or return them unchanged.

    The same seed is used for both files so mates stay paired.
    """
    logger.info(f"Estimated sequencing depth: {plan.original_depth}x")

    if not plan.subsample:
        if plan.target_depth > 0:
            logger.info(f"No read depth reduction requested or necessary "
                        f"(target {plan.target_depth}x)")
        else:
            logger.info("Depth reduction disabled")
        return reads

    logger.info(f"Subsampling reads by factor {plan.sampling_factor:.3f} "
                f"to get from {plan.original_depth}x to {plan.target_depth}x")

    sampled = []
    for mate, source in zip(('R1', 'R2'), reads):
        target = Path(workdir) / f"{mate}.sub.fq.gz"
        runner.run('subsample', [
            [seqtk, 'sample', f'-s{SUBSAMPLE_SEED}', str(source), f'{plan.sampling_factor:.3f}'],
            ['gzip', '-1', '-c'],
        ], stdout_path=target)
        sampled.append(target)

    return ReadPair(r1=sampled[0], r2=sampled[1])


__all__ = ["DepthPlan", "plan_depth", "apply_depth_plan"]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
