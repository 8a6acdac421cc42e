"""
DraftWeaver v0.1.0

Assembly post-processing for DraftWeaver.

- pilon_changes.py - per-contig correction counts from Pilon's change log
- contig_filter.py - length/coverage filtering, renaming, FASTA and graph export
"""

from .pilon_changes import ChangeLog, parse_changes, read_changes
from .contig_filter import (
    ContigRecord,
    ContigSummary,
    parse_coverage,
    read_contigs,
    select_contigs,
    write_contigs,
    export_assembly_graph,
    finalize_contigs,
)

__all__ = [
    # Polishing corrections
    "ChangeLog",
    "parse_changes",
    "read_changes",
    # Contig output
    "ContigRecord",
    "ContigSummary",
    "parse_coverage",
    "read_contigs",
    "select_contigs",
    "write_contigs",
    "export_assembly_graph",
    "finalize_contigs",
]
