#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Pilon change log parsing — per-contig correction counts.

Each change line has the form::

    <contig>:<pos>[-<pos>] <polished_contig>:<pos>[-<pos>] <old> <new>

and is counted against the polished (second) contig name.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)

_CHANGE_RE = re.compile(
    r'^(?P<orig>\S+):(?P<start>\d+)(?:-\d+)?'
    r' (?P<contig>\S+):(?P<pos>\d+)(?:-\d+)?'
    r' (?P<old>\S+) (?P<new>\S+)'
)


@dataclass
class ChangeLog:
    """Corrections per polished contig."""
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def corrections_for(self, contig_id: str) -> int:
        return self.counts.get(contig_id, 0)


def parse_changes(lines: Iterable[str]) -> ChangeLog:
    """
    Count change lines per polished contig; other lines are ignored.

    Example:
        >>> parse_changes(["ctg1:10 ctg1_pilon:10 A T"]).counts
        {'ctg1_pilon': 1}
    """
    counter: Counter = Counter()
    for line in lines:
        match = _CHANGE_RE.match(line)
        if match:
            counter[match.group('contig')] += 1
    return ChangeLog(counts=dict(counter))


def read_changes(path: Optional[Path]) -> ChangeLog:
    """
    Read a Pilon ``.changes`` file; no path means no polishing took place.
    """
    if path is None:
        return ChangeLog()

    with open(path) as handle:
        changes = parse_changes(handle)

    logger.info(f"Pilon made {changes.total:,} corrections across "
                f"{len(changes.counts):,} contigs")
    return changes


__all__ = ["ChangeLog", "parse_changes", "read_changes"]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
