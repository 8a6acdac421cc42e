#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Final contig filtering, renaming and export.

Contigs from the assembler carry their k-mer coverage in the identifier
(``NODE_1_length_52012_cov_31.4``). Filtering walks contigs longest first,
dropping short and low-coverage ones; survivors are renamed through the
user's template and written sorted by their new name.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from ..config.schema import FASTA_LINE_WIDTH, validate_name_format
from ..errors import ParseError, ValidationError
from ..io_utils import read_fasta, write_fasta
from ..version import __version__
from .pilon_changes import ChangeLog

logger = logging.getLogger(__name__)

_COVERAGE_RE = re.compile(r'cov_([0-9]+(?:\.[0-9]+)?)')


@dataclass
class ContigRecord:
    """
    One assembled contig.

    Attributes:
        id: Current identifier (assembler id, or the new name once renamed)
        sequence: Nucleotide sequence
        coverage: K-mer coverage parsed from the assembler id
        original_id: Assembler identifier (set by renaming)
        description: Header metadata following the identifier
    """
    id: str
    sequence: str
    coverage: float
    original_id: Optional[str] = None
    description: str = ''

    @property
    def length(self) -> int:
        return len(self.sequence)

    @property
    def header(self) -> str:
        return f"{self.id} {self.description}".rstrip()


@dataclass
class ContigSummary:
    """Outcome of the filter/rename pass."""
    kept: List[ContigRecord] = field(default_factory=list)
    dropped_short: int = 0
    dropped_low_coverage: int = 0

    @property
    def count(self) -> int:
        return len(self.kept)

    @property
    def total_bp(self) -> int:
        return sum(record.length for record in self.kept)

    @property
    def n50(self) -> int:
        """Length of the contig at which half the assembly is reached."""
        lengths = sorted((record.length for record in self.kept), reverse=True)
        half = self.total_bp / 2
        running = 0
        for length in lengths:
            running += length
            if running >= half:
                return length
        return 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'contigs': self.count,
            'total_bp': self.total_bp,
            'n50': self.n50,
            'longest': max((r.length for r in self.kept), default=0),
            'dropped_short': self.dropped_short,
            'dropped_low_coverage': self.dropped_low_coverage,
        }


def parse_coverage(contig_id: str) -> float:
    """
    Extract the ``cov_<float>`` value from an assembler contig id.

    Raises:
        ParseError: If the id carries no coverage token
    """
    match = _COVERAGE_RE.search(contig_id)
    if not match:
        raise ParseError("Contig id has no 'cov_<number>' coverage token", contig_id)
    return float(match.group(1))


def read_contigs(path: Path) -> List[ContigRecord]:
    """Parse the assembler's FASTA into records, in file order."""
    return [
        ContigRecord(id=contig_id, sequence=sequence, coverage=parse_coverage(contig_id))
        for contig_id, sequence in read_fasta(path).items()
    ]


def _selection_order(records: List[ContigRecord]) -> List[ContigRecord]:
    """Longest first; ties keep their original order (sorted() is stable)."""
    return sorted(records, key=lambda record: record.length, reverse=True)


def _output_order(records: List[ContigRecord]) -> List[ContigRecord]:
    """Ascending by (new) identifier."""
    return sorted(records, key=lambda record: record.id)


def select_contigs(
    records: List[ContigRecord],
    changes: ChangeLog,
    min_len: int = 0,
    min_cov: float = 2.0,
    name_format: str = 'contig%05d',
    run_date: Optional[date] = None,
) -> ContigSummary:
    """
    Filter by length then coverage and rename the survivors.

    Each kept contig becomes ``<name_format % index>`` with header metadata
    ``len=<L> cov=<C> corr=<N> origname=<assembler id> sw=... date=...``.

    Raises:
        ValidationError: If the naming template is malformed
    """
    name_error = validate_name_format(name_format)
    if name_error:
        raise ValidationError(name_error)

    stamp = (run_date or date.today()).strftime('%Y%m%d')
    summary = ContigSummary()
    index = 0

    for record in _selection_order(records):
        if record.length < min_len:
            summary.dropped_short += 1
            logger.debug(f"Removing short contig (< {min_len} bp): {record.id}")
            continue
        if record.coverage < min_cov:
            summary.dropped_low_coverage += 1
            logger.debug(f"Removing low coverage contig (< {min_cov}): {record.id}")
            continue

        index += 1
        original = record.id
        corrections = changes.corrections_for(original)
        summary.kept.append(ContigRecord(
            id=name_format % index,
            sequence=record.sequence,
            coverage=record.coverage,
            original_id=original,
            description=(
                f"len={record.length} cov={record.coverage:.1f} corr={corrections} "
                f"origname={original} sw=draftweaver/{__version__} date={stamp}"
            ),
        ))

    return summary


def write_contigs(records: List[ContigRecord], path: Path,
                  line_width: int = FASTA_LINE_WIDTH) -> int:
    """Write records sorted by identifier, wrapped at *line_width*."""
    return write_fasta(
        ((record.header, record.sequence) for record in _output_order(records)),
        path,
        line_width=line_width,
    )


def export_assembly_graph(graph_path: Optional[Path], outdir: Path,
                          name: str = 'contigs') -> Optional[Path]:
    """Copy the assembly graph to ``<outdir>/<name><suffix>``."""
    if graph_path is None or not Path(graph_path).exists():
        logger.warning("No assembly graph found; skipping graph export")
        return None

    target = Path(outdir) / f"{name}{Path(graph_path).suffix}"
    shutil.copyfile(graph_path, target)
    logger.info(f"Assembly graph: {target}")
    return target


def finalize_contigs(
    assembly_path: Path,
    changes: ChangeLog,
    output_path: Path,
    min_len: int = 0,
    min_cov: float = 2.0,
    name_format: str = 'contig%05d',
) -> ContigSummary:
    """Read, filter, rename and write the final contig set."""
    records = read_contigs(assembly_path)
    logger.info(f"Assembly has {len(records):,} contigs "
                f"({sum(r.length for r in records):,} bp)")

    summary = select_contigs(records, changes, min_len, min_cov, name_format)
    write_contigs(summary.kept, output_path)

    logger.info(f"Removed {summary.dropped_short} short and "
                f"{summary.dropped_low_coverage} low coverage contigs")
    logger.info(f"Wrote {summary.count:,} contigs ({summary.total_bp:,} bp, "
                f"N50 {summary.n50:,}) to {output_path}")
    return summary


__all__ = [
    "ContigRecord",
    "ContigSummary",
    "parse_coverage",
    "read_contigs",
    "select_contigs",
    "write_contigs",
    "export_assembly_graph",
    "finalize_contigs",
]

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
