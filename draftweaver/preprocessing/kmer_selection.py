#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

K-mer list selection for the assembler's multi-k mode.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config.schema import (
    KMER_READ_FRACTION,
    KMER_TARGET_COUNT,
    MAX_K,
    MIN_K,
    MIN_KMER_STEP,
    SHORT_READ_MIN_K,
    SHORT_READ_THRESHOLD,
)
from ..errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KmerPlan:
    """Ordered, distinct k-mer sizes handed to the assembler."""
    kmers: Tuple[int, ...]
    source: str  # 'user' or 'auto'
    min_k: int
    max_k: int

    def as_argument(self) -> str:
        """Render as a comma-separated list, e.g. '31,51,71'."""
        return ','.join(str(k) for k in self.kmers)


def parse_kmer_list(text: str, avg_len: int, min_k: int = MIN_K,
                    max_k: int = MAX_K) -> KmerPlan:
    """
    Parse a user k-mer list separated by any non-digit characters.

    Raises:
        ValidationError: If the list is empty or any k violates a bound
    """
    values = [int(token) for token in re.split(r'[^0-9]+', text or '') if token]
    if not values:
        raise ValidationError(f"No k-mer sizes found in '{text}'")

    for k in values:
        if k > max_k:
            raise ValidationError(f"K-mer {k} is larger than the maximum allowed ({max_k})")
        if k < min_k:
            raise ValidationError(f"K-mer {k} is smaller than the minimum allowed ({min_k})")
        if k >= avg_len:
            raise ValidationError(f"K-mer {k} is not shorter than the average read length ({avg_len})")

    kmers = tuple(sorted(set(values)))
    return KmerPlan(kmers=kmers, source='user', min_k=min_k, max_k=max_k)


def kmer_step(min_k: int, max_k: int, target_count: int = KMER_TARGET_COUNT) -> int:
    """Spacing between successive k values, at least MIN_KMER_STEP and even."""
    step = max(MIN_KMER_STEP, (max_k - min_k) // (target_count - 1))
    if step % 2 == 1:
        step += 1
    return step


def auto_kmer_list(avg_len: int, min_k: int = MIN_K, max_k: int = MAX_K) -> KmerPlan:
    """
    Derive k-mer sizes from the average read length.

    The largest k is capped at KMER_READ_FRACTION of the read length; short
    reads (avg_len < SHORT_READ_THRESHOLD) lower the floor to SHORT_READ_MIN_K.

    Example:
        >>> auto_kmer_list(150).kmers
        (31, 51, 71, 91, 111)

    Raises:
        ValidationError: If the capped maximum falls below the minimum
    """
    max_k = min(max_k, int(KMER_READ_FRACTION * avg_len))
    if avg_len < SHORT_READ_THRESHOLD:
        min_k = SHORT_READ_MIN_K

    if max_k < min_k:
        raise ValidationError(
            f"Reads too short for assembly: average length {avg_len} allows "
            f"k-mers up to {max_k}, below the minimum of {min_k}"
        )

    step = kmer_step(min_k, max_k)
    kmers = tuple(range(min_k, max_k + 1, step))
    return KmerPlan(kmers=kmers, source='auto', min_k=min_k, max_k=max_k)


def select_kmers(user_text: Optional[str], avg_len: int, min_k: int = MIN_K,
                 max_k: int = MAX_K) -> KmerPlan:
    """Use the user's k-mer list when given, otherwise derive one."""
    if user_text:
        plan = parse_kmer_list(user_text, avg_len, min_k, max_k)
    else:
        plan = auto_kmer_list(avg_len, min_k, max_k)
    logger.info(f"Using k-mers ({plan.source}): {plan.as_argument()}")
    return plan


__all__ = ["KmerPlan", "parse_kmer_list", "kmer_step", "auto_kmer_list", "select_kmers"]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
